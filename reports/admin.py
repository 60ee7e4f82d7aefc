from django.contrib import admin

from reports.models import ReportTemplate


@admin.register(ReportTemplate)
class ReportTemplateAdmin(admin.ModelAdmin):
    list_display = ("name", "data_source", "created_by", "is_shared", "updated_at")
    list_filter = ("data_source", "is_shared")
    search_fields = ("name", "description")
