"""
Cohorts, students and everything that happens in the skills lab.

Models:
    Program: A credential track (e.g. Paramedic, EMT)
    Cohort: A group of students that start a program together
    Student: A student enrolled in a cohort
    Scenario / ScenarioVersion: Simulation scenarios and their history
    LabDay / LabStation: A scheduled lab day and its stations
    ScenarioAssessment: Grading of a student team leading a scenario
    SkillStation / StationCompletion: The skills checklist pool and results
    ClinicalHours: Running total of a student's clinical hours
"""
from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import AuditModel


class Program(models.Model):
    name = models.CharField(max_length=100)
    abbreviation = models.CharField(max_length=20)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.abbreviation


class Cohort(AuditModel):
    program = models.ForeignKey(Program, on_delete=models.PROTECT, related_name="cohorts")
    cohort_number = models.PositiveIntegerField()
    start_date = models.DateField(null=True, blank=True)
    expected_end_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    is_archived = models.BooleanField(default=False)
    archived_at = models.DateTimeField(null=True, blank=True)
    archived_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="cohorts_archived",
    )
    archive_summary = models.JSONField(null=True, blank=True)

    class Meta:
        db_table = "cohorts"
        ordering = ["-start_date", "-cohort_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["program", "cohort_number"], name="unique_cohort_per_program"
            )
        ]

    def __str__(self):
        return self.label

    @property
    def label(self):
        return f"{self.program.abbreviation} Group {self.cohort_number}"

    def to_dict(self):
        return {
            "id": self.pk,
            "label": self.label,
            "program": self.program.abbreviation,
            "program_id": self.program_id,
            "cohort_number": self.cohort_number,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "expected_end_date": (
                self.expected_end_date.isoformat() if self.expected_end_date else None
            ),
            "is_active": self.is_active,
            "is_archived": self.is_archived,
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
        }


class Student(AuditModel):
    STATUS_ACTIVE = "active"
    STATUS_GRADUATED = "graduated"
    STATUS_WITHDRAWN = "withdrawn"
    STATUS_ON_HOLD = "on_hold"

    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_GRADUATED, "Graduated"),
        (STATUS_WITHDRAWN, "Withdrawn"),
        (STATUS_ON_HOLD, "On hold"),
    ]

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(blank=True)
    cohort = models.ForeignKey(
        Cohort, null=True, blank=True, on_delete=models.SET_NULL, related_name="students"
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    agency = models.CharField(max_length=200, blank=True)
    photo_url = models.URLField(blank=True)
    learning_style = models.CharField(max_length=50, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        db_table = "students"
        ordering = ["last_name", "first_name"]

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self):
        """Every field; callers sanitise with core.permissions.sanitize_student()."""
        return {
            "id": self.pk,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "cohort_id": self.cohort_id,
            "cohort": self.cohort.label if self.cohort_id else None,
            "status": self.status,
            "email": self.email,
            "agency": self.agency,
            "photo_url": self.photo_url,
            "learning_style": self.learning_style,
            "notes": self.notes,
        }


class Scenario(AuditModel):
    title = models.CharField(max_length=255)
    category = models.CharField(max_length=100, blank=True)
    difficulty = models.CharField(max_length=20, blank=True)
    chief_complaint = models.CharField(max_length=255, blank=True)
    content = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["title"]

    def __str__(self):
        return self.title

    def snapshot(self):
        return {
            "title": self.title,
            "category": self.category,
            "difficulty": self.difficulty,
            "chief_complaint": self.chief_complaint,
            "content": self.content,
            "is_active": self.is_active,
        }

    def to_dict(self):
        return {"id": self.pk, **self.snapshot()}


class ScenarioVersion(models.Model):
    scenario = models.ForeignKey(Scenario, on_delete=models.CASCADE, related_name="versions")
    version_number = models.PositiveIntegerField()
    data = models.JSONField()
    change_summary = models.CharField(max_length=500, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-version_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["scenario", "version_number"], name="unique_scenario_version"
            )
        ]

    def to_dict(self):
        return {
            "id": self.pk,
            "version_number": self.version_number,
            "data": self.data,
            "change_summary": self.change_summary,
            "created_by": self.created_by.email if self.created_by else None,
            "created_at": self.created_at.isoformat(),
        }


class LabDay(AuditModel):
    date = models.DateField(db_index=True)
    cohort = models.ForeignKey(Cohort, on_delete=models.CASCADE, related_name="lab_days")
    title = models.CharField(max_length=255, blank=True)
    semester = models.PositiveSmallIntegerField(null=True, blank=True)
    week_number = models.PositiveSmallIntegerField(null=True, blank=True)
    day_number = models.PositiveSmallIntegerField(null=True, blank=True)
    num_rotations = models.PositiveSmallIntegerField(default=4)
    rotation_duration = models.PositiveSmallIntegerField(default=30)
    notes = models.TextField(blank=True)
    is_cancelled = models.BooleanField(default=False)

    class Meta:
        db_table = "lab_days"
        ordering = ["date"]

    def __str__(self):
        return f"{self.cohort} lab {self.date}"

    def to_dict(self, include_stations=False):
        data = {
            "id": self.pk,
            "date": self.date.isoformat(),
            "cohort_id": self.cohort_id,
            "cohort": self.cohort.label,
            "title": self.title,
            "semester": self.semester,
            "week_number": self.week_number,
            "day_number": self.day_number,
            "num_rotations": self.num_rotations,
            "rotation_duration": self.rotation_duration,
            "notes": self.notes,
            "is_cancelled": self.is_cancelled,
        }
        if include_stations:
            data["stations"] = [s.to_dict() for s in self.stations.all()]
        return data


class LabStation(models.Model):
    TYPE_SCENARIO = "scenario"
    TYPE_SKILLS = "skills"
    TYPE_DOCUMENTATION = "documentation"

    TYPE_CHOICES = [
        (TYPE_SCENARIO, "Scenario"),
        (TYPE_SKILLS, "Skills"),
        (TYPE_DOCUMENTATION, "Documentation"),
    ]

    lab_day = models.ForeignKey(LabDay, on_delete=models.CASCADE, related_name="stations")
    station_number = models.PositiveSmallIntegerField()
    station_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_SCENARIO)
    scenario = models.ForeignKey(
        Scenario, null=True, blank=True, on_delete=models.SET_NULL, related_name="stations"
    )
    skill_name = models.CharField(max_length=255, blank=True)
    custom_title = models.CharField(max_length=255, blank=True)
    instructor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="stations_instructing",
    )
    additional_instructor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="stations_assisting",
    )
    location = models.CharField(max_length=100, blank=True)

    class Meta:
        db_table = "lab_stations"
        ordering = ["lab_day", "station_number"]

    def __str__(self):
        return self.custom_title or f"Station {self.station_number}"

    def to_dict(self):
        return {
            "id": self.pk,
            "station_number": self.station_number,
            "station_type": self.station_type,
            "scenario_id": self.scenario_id,
            "skill_name": self.skill_name,
            "custom_title": self.custom_title,
            "instructor_id": self.instructor_id,
            "additional_instructor_id": self.additional_instructor_id,
            "location": self.location,
        }


class ScenarioAssessment(models.Model):
    ISSUE_NONE = "none"
    ISSUE_MINOR = "minor"
    ISSUE_NEEDS_FOLLOWUP = "needs_followup"

    ISSUE_CHOICES = [
        (ISSUE_NONE, "None"),
        (ISSUE_MINOR, "Minor"),
        (ISSUE_NEEDS_FOLLOWUP, "Needs follow-up"),
    ]

    lab_station = models.ForeignKey(
        LabStation, on_delete=models.CASCADE, related_name="assessments"
    )
    lab_day = models.ForeignKey(
        LabDay, null=True, blank=True, on_delete=models.CASCADE, related_name="assessments"
    )
    cohort = models.ForeignKey(
        Cohort, null=True, blank=True, on_delete=models.CASCADE, related_name="assessments"
    )
    rotation_number = models.PositiveSmallIntegerField(null=True, blank=True)
    team_lead = models.ForeignKey(
        Student,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="team_lead_assessments",
    )
    assessment_score = models.PositiveSmallIntegerField(null=True, blank=True)
    treatment_score = models.PositiveSmallIntegerField(null=True, blank=True)
    communication_score = models.PositiveSmallIntegerField(null=True, blank=True)
    overall_score = models.PositiveSmallIntegerField(null=True, blank=True)
    issue_level = models.CharField(max_length=20, choices=ISSUE_CHOICES, blank=True)
    comments = models.TextField(blank=True)
    graded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "scenario_assessments"
        ordering = ["-created_at"]

    def to_dict(self):
        return {
            "id": self.pk,
            "lab_station_id": self.lab_station_id,
            "lab_day_id": self.lab_day_id,
            "cohort_id": self.cohort_id,
            "rotation_number": self.rotation_number,
            "team_lead_id": self.team_lead_id,
            "assessment_score": self.assessment_score,
            "treatment_score": self.treatment_score,
            "communication_score": self.communication_score,
            "overall_score": self.overall_score,
            "issue_level": self.issue_level,
            "comments": self.comments,
            "created_at": self.created_at.isoformat(),
        }


class SkillStation(models.Model):
    """An entry in the skills checklist every student must pass."""

    station_code = models.CharField(max_length=30, unique=True)
    station_name = models.CharField(max_length=255)
    category = models.CharField(max_length=100, blank=True)
    display_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["display_order", "station_code"]

    def __str__(self):
        return f"{self.station_code} {self.station_name}"


class StationCompletion(models.Model):
    RESULT_PASS = "pass"
    RESULT_FAIL = "fail"
    RESULT_NEEDS_REVIEW = "needs_review"

    RESULT_CHOICES = [
        (RESULT_PASS, "Pass"),
        (RESULT_FAIL, "Fail"),
        (RESULT_NEEDS_REVIEW, "Needs review"),
    ]

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="station_completions")
    station = models.ForeignKey(SkillStation, on_delete=models.CASCADE, related_name="completions")
    result = models.CharField(max_length=20, choices=RESULT_CHOICES)
    completed_at = models.DateTimeField(default=timezone.now)
    logged_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )

    class Meta:
        ordering = ["-completed_at"]


class ClinicalHours(models.Model):
    student = models.OneToOneField(Student, on_delete=models.CASCADE, related_name="clinical_hours")
    total_hours = models.DecimalField(max_digits=7, decimal_places=2, default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Clinical hours"
