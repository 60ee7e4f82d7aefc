from django.contrib import admin

from clinical.models import Agency, FieldPreceptor, StudentInternship
from core.mixins import CreatedUpdatedAuditMixin


@admin.register(Agency)
class AgencyAdmin(admin.ModelAdmin):
    list_display = ("name", "abbreviation", "agency_type", "is_active")
    search_fields = ("name", "abbreviation")


@admin.register(FieldPreceptor)
class FieldPreceptorAdmin(CreatedUpdatedAuditMixin, admin.ModelAdmin):
    list_display = ("last_name", "first_name", "email", "agency", "snhd_cert_expires", "is_active")
    list_filter = ("agency", "is_active")
    search_fields = ("first_name", "last_name", "email")


@admin.register(StudentInternship)
class StudentInternshipAdmin(CreatedUpdatedAuditMixin, admin.ModelAdmin):
    list_display = ("student", "preceptor", "status", "internship_start_date", "expected_end_date")
    list_filter = ("status", "cohort")
    search_fields = ("student__first_name", "student__last_name")
