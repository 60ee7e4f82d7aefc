"""
Access control decorators for the JSON API.

This module enforces Layer 1 (App-Level Access) and the role checks of
Layer 2 (see core.permissions). The decorators raise exceptions that
``core.api.api_view`` turns into JSON error responses, so api_view must be
the outermost decorator.

Decorators:
----------
@api_login_required
    User must be signed in (401). Pending users without a role pass.

@require_app_access
    User must be signed in (401) and have a profile + role group (403).

@require_min_role(ROLE_LEAD_INSTRUCTOR)
    App access plus at least the given role (403 otherwise).

@require_cron_secret
    Scheduled-job endpoints: ``Authorization: Bearer <CRON_SECRET>``.

Usage Examples:
--------------
    @api_view("GET")
    @require_app_access
    def cohorts(request):
        ...

    @api_view("GET")
    @require_min_role(ROLE_ADMIN)
    def admin_config(request):
        ...
"""
import hmac
from functools import wraps

from django.conf import settings
from django.core.exceptions import PermissionDenied

from core.exceptions import NotAuthenticated
from core.permissions import has_app_access, has_min_role


def _check_app_access(user):
    if not user.is_authenticated:
        raise NotAuthenticated()
    if not has_app_access(user):
        raise PermissionDenied("Your account has not been granted access yet")


def api_login_required(view_func):
    """Decorator to require a signed-in user, with or without app access."""

    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            raise NotAuthenticated()
        return view_func(request, *args, **kwargs)

    return wrapper


def require_app_access(view_func):
    """
    Decorator to require that the user has app access.

    User must:
    1. Be authenticated
    2. Have an active ProgramStaff profile
    3. Be a member of at least one role group
    """

    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        _check_app_access(request.user)
        return view_func(request, *args, **kwargs)

    return wrapper


def require_min_role(role):
    """
    Decorator to require a minimum role.

    Args:
        role: Role key from core.permissions (e.g. ROLE_ADMIN)

    Raises:
        PermissionDenied if the user's role is below ``role``
    """

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            _check_app_access(request.user)
            if not has_min_role(request.user, role):
                raise PermissionDenied("Insufficient permissions")
            return view_func(request, *args, **kwargs)

        return wrapper

    return decorator


def require_cron_secret(view_func):
    """
    Decorator for scheduled-job endpoints.

    The scheduler calls these with ``Authorization: Bearer <CRON_SECRET>``.
    When settings.CRON_SECRET is empty the check is skipped.
    """

    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        secret = getattr(settings, "CRON_SECRET", "")
        if secret:
            header = request.headers.get("Authorization", "")
            if not hmac.compare_digest(header.encode(), f"Bearer {secret}".encode()):
                raise NotAuthenticated()
        return view_func(request, *args, **kwargs)

    return wrapper
