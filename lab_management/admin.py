from django.contrib import admin

from core.mixins import CreatedUpdatedAuditMixin
from lab_management.models import (
    ClinicalHours,
    Cohort,
    LabDay,
    LabStation,
    Program,
    Scenario,
    ScenarioAssessment,
    ScenarioVersion,
    SkillStation,
    StationCompletion,
    Student,
)


@admin.register(Program)
class ProgramAdmin(admin.ModelAdmin):
    list_display = ("name", "abbreviation", "is_active")


@admin.register(Cohort)
class CohortAdmin(CreatedUpdatedAuditMixin, admin.ModelAdmin):
    list_display = ("__str__", "start_date", "expected_end_date", "is_active", "is_archived")
    list_filter = ("program", "is_active", "is_archived")
    readonly_fields = ("archived_at", "archived_by", "archive_summary")


@admin.register(Student)
class StudentAdmin(CreatedUpdatedAuditMixin, admin.ModelAdmin):
    list_display = ("last_name", "first_name", "email", "cohort", "status")
    list_filter = ("status", "cohort")
    search_fields = ("first_name", "last_name", "email")


class LabStationInline(admin.TabularInline):
    model = LabStation
    extra = 0


@admin.register(LabDay)
class LabDayAdmin(CreatedUpdatedAuditMixin, admin.ModelAdmin):
    list_display = ("date", "cohort", "title", "is_cancelled")
    list_filter = ("cohort", "is_cancelled")
    date_hierarchy = "date"
    inlines = [LabStationInline]


class ScenarioVersionInline(admin.TabularInline):
    model = ScenarioVersion
    extra = 0
    readonly_fields = ("version_number", "change_summary", "created_by", "created_at")


@admin.register(Scenario)
class ScenarioAdmin(CreatedUpdatedAuditMixin, admin.ModelAdmin):
    list_display = ("title", "category", "difficulty", "is_active")
    list_filter = ("category", "difficulty", "is_active")
    search_fields = ("title", "chief_complaint")
    inlines = [ScenarioVersionInline]


@admin.register(ScenarioAssessment)
class ScenarioAssessmentAdmin(admin.ModelAdmin):
    list_display = ("lab_station", "team_lead", "overall_score", "issue_level", "created_at")
    list_filter = ("issue_level",)


@admin.register(SkillStation)
class SkillStationAdmin(admin.ModelAdmin):
    list_display = ("station_code", "station_name", "category", "display_order", "is_active")
    list_filter = ("category", "is_active")


@admin.register(StationCompletion)
class StationCompletionAdmin(admin.ModelAdmin):
    list_display = ("student", "station", "result", "completed_at")
    list_filter = ("result",)


@admin.register(ClinicalHours)
class ClinicalHoursAdmin(admin.ModelAdmin):
    list_display = ("student", "total_hours", "updated_at")
