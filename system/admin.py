from django.contrib import admin

from system.models import JobRun, SystemAlert, SystemConfig


@admin.register(SystemConfig)
class SystemConfigAdmin(admin.ModelAdmin):
    list_display = ("config_key", "category", "updated_by", "updated_at")
    list_filter = ("category",)
    search_fields = ("config_key", "description")
    readonly_fields = ("updated_by", "updated_at")

    def save_model(self, request, obj, form, change):
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(SystemAlert)
class SystemAlertAdmin(admin.ModelAdmin):
    list_display = ("title", "alert_type", "severity", "resolved", "created_at")
    list_filter = ("alert_type", "severity", "resolved")
    readonly_fields = ("created_at", "resolved_by", "resolved_at")


@admin.register(JobRun)
class JobRunAdmin(admin.ModelAdmin):
    list_display = ("job_name", "started_at", "finished_at", "success")
    list_filter = ("job_name", "success")
    readonly_fields = ("job_name", "started_at", "finished_at", "success", "summary", "error")
