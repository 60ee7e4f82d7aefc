from allauth.account.adapter import DefaultAccountAdapter
from allauth.socialaccount.adapter import DefaultSocialAccountAdapter
from django.conf import settings
from django.core.exceptions import PermissionDenied


def email_domain_allowed(email):
    """True when ALLOWED_SIGNUP_DOMAINS is empty or ``email`` is on one of them."""
    allowed = getattr(settings, "ALLOWED_SIGNUP_DOMAINS", None)
    if not allowed:
        return True
    email = (email or "").lower()
    return any(email.endswith("@" + d.lower()) for d in allowed)


class DomainRestrictedAdapter(DefaultAccountAdapter):
    def is_open_for_signup(self, request):
        return True

    def save_user(self, request, user, form, commit=True):
        user = super().save_user(request, user, form, commit=False)
        if not email_domain_allowed(user.email):
            raise PermissionDenied("This email domain is not allowed.")
        if commit:
            user.save()
        return user


class DomainRestrictedSocialAdapter(DefaultSocialAccountAdapter):
    """Google sign-up is only open to accounts on the institution's domains."""

    def is_open_for_signup(self, request, sociallogin):
        return email_domain_allowed(sociallogin.user.email)
