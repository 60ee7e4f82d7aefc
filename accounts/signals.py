"""
Signals for account-related events.

- user_signed_up: tell admins someone is waiting for a role
- user_logged_in: record the sign-in time on the staff profile
"""
from allauth.account.signals import user_signed_up
from django.contrib.auth.signals import user_logged_in
from django.dispatch import receiver
from django.urls import reverse
from django.utils import timezone

from core.emails import send_new_pending_user_email_async
from core.models import ProgramStaff
from notifications.models import UserNotification
from notifications.services import notify_admins, notify_safely


@receiver(user_signed_up)
def notify_admins_on_signup(request, user, **kwargs):
    """
    When a new user signs up, notify Admins so they can grant a role.

    The user is NOT automatically given a profile; they remain a
    'pending user' until an Admin assigns them a role.
    """
    users_url = None
    if request:
        users_url = request.build_absolute_uri(
            reverse("admin:auth_user_changelist") + "?role=pending"
        )

    name = user.get_full_name() or user.email or user.username
    notify_safely(
        notify_admins,
        "New user awaiting access",
        f"{name} signed up and is waiting for a role.",
        type=UserNotification.TYPE_SYSTEM,
        category=UserNotification.CATEGORY_SYSTEM,
        link_url="/admin/users",
        reference_type="pending_user",
        reference_id=user.pk,
    )

    # Email goes out on a background thread so sign-up isn't blocked
    send_new_pending_user_email_async(new_user=user, users_url=users_url)


@receiver(user_logged_in)
def record_last_login(sender, request, user, **kwargs):
    ProgramStaff.objects.filter(user=user).update(last_login_at=timezone.now())
