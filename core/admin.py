"""
Django admin configuration for core models.

Provides admin interfaces for:
- User (Django's built-in User model with a role filter)
- ProgramStaff
- Endorsement
"""
from django.contrib import admin
from django.contrib.auth import get_user_model
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.html import format_html

from core.mixins import CreatedUpdatedAuditMixin
from core.models import Endorsement, ProgramStaff
from core.permissions import GROUP_ROLES, ROLE_GROUPS, ROLE_LABELS, get_role

User = get_user_model()


# ---- User (Django's built-in User model) ----


class RoleFilter(admin.SimpleListFilter):
    """Filter users by role, including users still waiting for one."""

    title = "role"
    parameter_name = "role"

    def lookups(self, request, model_admin):
        return [("pending", "Pending (no role)")] + list(ROLE_LABELS.items())

    def queryset(self, request, queryset):
        value = self.value()
        if value == "pending":
            return queryset.filter(is_superuser=False).exclude(groups__name__in=GROUP_ROLES)
        if value in ROLE_GROUPS:
            return queryset.filter(groups__name=ROLE_GROUPS[value])
        return queryset


class CustomUserAdmin(BaseUserAdmin):
    """
    User admin that shows each user's program role, so admins can spot
    newly signed-up users who are still waiting for access.
    """

    list_display = (
        "username",
        "email",
        "first_name",
        "last_name",
        "is_active",
        "role_status",
        "date_joined",
    )
    list_filter = (RoleFilter, "is_staff", "is_superuser", "is_active", "date_joined")

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("program_staff")

    @admin.display(description="Role")
    def role_status(self, obj):
        role = get_role(obj)
        if role is None:
            return format_html('<span style="color: red;">{}</span>', "Pending")
        return ROLE_LABELS[role]


admin.site.unregister(User)
admin.site.register(User, CustomUserAdmin)


@admin.register(ProgramStaff)
class ProgramStaffAdmin(CreatedUpdatedAuditMixin, admin.ModelAdmin):
    list_display = ["user", "user_email", "is_active", "last_login_at", "created_at"]
    search_fields = ["user__username", "user__email", "user__first_name", "user__last_name"]
    list_filter = ["is_active", "created_at"]
    readonly_fields = ["created_at", "created_by", "last_updated_at", "last_updated_by", "last_login_at"]
    autocomplete_fields = ["user"]

    @admin.display(description="Email", ordering="user__email")
    def user_email(self, obj):
        return obj.user.email


@admin.register(Endorsement)
class EndorsementAdmin(admin.ModelAdmin):
    list_display = ["user", "endorsement_type", "title", "expires_at", "is_active"]
    list_filter = ["endorsement_type", "is_active"]
    search_fields = ["user__email", "user__first_name", "user__last_name", "title"]
    autocomplete_fields = ["user"]
    readonly_fields = ["granted_by", "granted_at"]

    def save_model(self, request, obj, form, change):
        if not change:
            obj.granted_by = request.user
        super().save_model(request, obj, form, change)
