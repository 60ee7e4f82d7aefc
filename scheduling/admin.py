from django.contrib import admin

from core.mixins import CreatedUpdatedAuditMixin
from scheduling.models import InstructorAvailability, Shift, ShiftSignup, ShiftTradeRequest


class ShiftSignupInline(admin.TabularInline):
    model = ShiftSignup
    fk_name = "shift"
    extra = 0
    fields = ("instructor", "status", "signup_start_time", "signup_end_time", "is_partial")


@admin.register(Shift)
class ShiftAdmin(CreatedUpdatedAuditMixin, admin.ModelAdmin):
    list_display = ("title", "date", "start_time", "end_time", "department", "is_cancelled")
    list_filter = ("department", "is_cancelled")
    search_fields = ("title", "location")
    date_hierarchy = "date"
    inlines = [ShiftSignupInline]


@admin.register(ShiftTradeRequest)
class ShiftTradeRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "requester", "requester_shift", "target_user", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("requester__email", "target_user__email")
    readonly_fields = ("approved_by", "approved_at")


@admin.register(InstructorAvailability)
class InstructorAvailabilityAdmin(admin.ModelAdmin):
    list_display = ("instructor", "date", "is_all_day", "start_time", "end_time")
    list_filter = ("is_all_day",)
    date_hierarchy = "date"
