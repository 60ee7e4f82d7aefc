from django.conf import settings
from django.contrib import messages
from django.contrib.auth import authenticate, login, logout
from django.contrib.auth.decorators import login_required
from django.shortcuts import redirect, render
from django.utils.http import url_has_allowed_host_and_scheme

from core.api import json_error
from core.permissions import has_app_access


def _safe_next(request, candidate):
    if candidate and url_has_allowed_host_and_scheme(
        candidate, allowed_hosts={request.get_host()}, require_https=request.is_secure()
    ):
        return candidate
    return None


@login_required
def post_login_router(request):
    """Route users after login based on app access."""
    if has_app_access(request.user):
        return redirect(settings.POST_LOGIN_URL)
    return redirect("accounts:no_permissions")


@login_required
def no_permissions(request):
    support_email = getattr(settings, "APP_SUPPORT_EMAIL", None)
    return render(
        request, "accounts/no_permissions.html", {"support_email": support_email}
    )


def sign_in(request):
    if request.user.is_authenticated:
        return redirect("accounts:post_login_router")

    if request.method == "POST":
        username = request.POST.get("username")
        password = request.POST.get("password")
        user = authenticate(request, username=username, password=password)
        if user is not None:
            login(request, user)
            next_url = _safe_next(request, request.POST.get("next") or request.GET.get("next"))
            return redirect(next_url or "accounts:post_login_router")
        messages.error(request, "Invalid username or password.")

    # preserve ?next=... if present
    return render(request, "accounts/login.html", {"next": request.GET.get("next", "")})


@login_required
def sign_out(request):
    logout(request)
    return redirect("accounts:login")


def permission_denied_view(request, exception=None):
    """
    Custom 403 handler: JSON for API requests, a styled page otherwise.
    """
    if request.path.startswith("/api/"):
        return json_error(str(exception) if exception else "Forbidden", status=403)
    return render(request, "accounts/forbidden.html", status=403)
