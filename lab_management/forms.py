from django import forms

from lab_management.models import (
    Cohort,
    LabDay,
    LabStation,
    Scenario,
    ScenarioAssessment,
    Student,
)


class CohortForm(forms.ModelForm):
    class Meta:
        model = Cohort
        fields = ["program", "cohort_number", "start_date", "expected_end_date", "is_active"]

    def clean(self):
        cleaned = super().clean()
        start = cleaned.get("start_date")
        end = cleaned.get("expected_end_date")
        if start and end and end < start:
            self.add_error("expected_end_date", "Expected end date must be after the start date.")
        return cleaned


class StudentForm(forms.ModelForm):
    class Meta:
        model = Student
        fields = [
            "first_name",
            "last_name",
            "email",
            "cohort",
            "status",
            "agency",
            "photo_url",
            "learning_style",
            "notes",
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["status"].required = False

    def clean_status(self):
        return self.cleaned_data.get("status") or Student.STATUS_ACTIVE

    def clean_email(self):
        return (self.cleaned_data.get("email") or "").lower()


class ScenarioForm(forms.ModelForm):
    class Meta:
        model = Scenario
        fields = ["title", "category", "difficulty", "chief_complaint", "content", "is_active"]

    def clean_difficulty(self):
        return (self.cleaned_data.get("difficulty") or "").strip().lower()

    def clean_content(self):
        return self.cleaned_data.get("content") or {}


class LabDayForm(forms.ModelForm):
    class Meta:
        model = LabDay
        fields = [
            "date",
            "cohort",
            "title",
            "semester",
            "week_number",
            "day_number",
            "num_rotations",
            "rotation_duration",
            "notes",
            "is_cancelled",
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["num_rotations"].required = False
        self.fields["rotation_duration"].required = False

    def clean_num_rotations(self):
        return self.cleaned_data.get("num_rotations") or 4

    def clean_rotation_duration(self):
        return self.cleaned_data.get("rotation_duration") or 30


class LabStationForm(forms.ModelForm):
    class Meta:
        model = LabStation
        fields = [
            "station_number",
            "station_type",
            "scenario",
            "skill_name",
            "custom_title",
            "instructor",
            "additional_instructor",
            "location",
        ]


class ScenarioAssessmentForm(forms.ModelForm):
    SCORE_FIELDS = ("assessment_score", "treatment_score", "communication_score", "overall_score")

    class Meta:
        model = ScenarioAssessment
        fields = [
            "lab_station",
            "rotation_number",
            "team_lead",
            "assessment_score",
            "treatment_score",
            "communication_score",
            "overall_score",
            "issue_level",
            "comments",
        ]

    def clean(self):
        cleaned = super().clean()
        for name in self.SCORE_FIELDS:
            value = cleaned.get(name)
            if value is not None and not 0 <= value <= 5:
                self.add_error(name, "Scores must be between 0 and 5.")
        return cleaned
