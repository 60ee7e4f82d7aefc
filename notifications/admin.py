from django.contrib import admin

from notifications.models import (
    Announcement,
    AnnouncementRead,
    EmailLog,
    NotificationPreference,
    UserNotification,
)


@admin.register(UserNotification)
class UserNotificationAdmin(admin.ModelAdmin):
    list_display = ("user_email", "title", "type", "category", "is_read", "created_at")
    list_filter = ("type", "category", "is_read")
    search_fields = ("user_email", "title", "reference_type", "reference_id")
    date_hierarchy = "created_at"


@admin.register(NotificationPreference)
class NotificationPreferenceAdmin(admin.ModelAdmin):
    list_display = ("user", "email_enabled", "updated_at")
    search_fields = ("user__email",)


class AnnouncementReadInline(admin.TabularInline):
    model = AnnouncementRead
    extra = 0
    readonly_fields = ("user_email", "read_at")


@admin.register(Announcement)
class AnnouncementAdmin(admin.ModelAdmin):
    list_display = ("title", "priority", "target_audience", "starts_at", "ends_at", "is_active")
    list_filter = ("priority", "target_audience", "is_active")
    search_fields = ("title", "body")
    inlines = [AnnouncementReadInline]


@admin.register(EmailLog)
class EmailLogAdmin(admin.ModelAdmin):
    list_display = ("to_email", "subject", "template", "status", "created_at")
    list_filter = ("status", "template")
    search_fields = ("to_email", "subject")
    readonly_fields = ("to_email", "subject", "template", "status", "error", "created_at")
