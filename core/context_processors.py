"""
Context processors for core app.

Provides the signed-in user's role to templates (sign-in and no-access pages).
"""
from typing import Any

from django.http import HttpRequest

from core.permissions import ROLE_LABELS, get_role, has_app_access


def role_context(request: HttpRequest) -> dict[str, Any]:
    user = request.user
    role = get_role(user) if user.is_authenticated else None
    return {
        "user_role": role,
        "user_role_label": ROLE_LABELS.get(role),
        "user_has_app_access": user.is_authenticated and has_app_access(user),
    }
