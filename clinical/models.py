"""
Clinical placements: partner agencies, field preceptors and internships.
"""
from datetime import timedelta

from django.db import models

from core.models import AuditModel
from lab_management.models import Cohort, Student

PHASE_1_DUE_AFTER_START = timedelta(days=30)
PHASE_2_DUE_BEFORE_END = timedelta(days=30)


class Agency(models.Model):
    name = models.CharField(max_length=255)
    abbreviation = models.CharField(max_length=30, blank=True)
    agency_type = models.CharField(max_length=50, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name_plural = "Agencies"
        ordering = ["name"]

    def __str__(self):
        return self.abbreviation or self.name


class FieldPreceptor(AuditModel):
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=40, blank=True)
    agency = models.ForeignKey(
        Agency, null=True, blank=True, on_delete=models.SET_NULL, related_name="preceptors"
    )
    snhd_cert_expires = models.DateField(
        null=True, blank=True, help_text="Health district field training certification expiry"
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["last_name", "first_name"]

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self):
        return {
            "id": self.pk,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "agency": str(self.agency) if self.agency_id else None,
            "agency_id": self.agency_id,
            "snhd_cert_expires": (
                self.snhd_cert_expires.isoformat() if self.snhd_cert_expires else None
            ),
            "is_active": self.is_active,
        }


class StudentInternship(AuditModel):
    STATUS_NOT_STARTED = "not_started"
    STATUS_IN_PROGRESS = "in_progress"
    STATUS_ON_TRACK = "on_track"
    STATUS_AT_RISK = "at_risk"
    STATUS_PHASE_1 = "phase_1_mentorship"
    STATUS_PHASE_2 = "phase_2_evaluation"
    STATUS_COMPLETED = "completed"
    STATUS_WITHDRAWN = "withdrawn"

    STATUS_CHOICES = [
        (STATUS_NOT_STARTED, "Not started"),
        (STATUS_IN_PROGRESS, "In progress"),
        (STATUS_ON_TRACK, "On track"),
        (STATUS_AT_RISK, "At risk"),
        (STATUS_PHASE_1, "Phase 1: mentorship"),
        (STATUS_PHASE_2, "Phase 2: evaluation"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_WITHDRAWN, "Withdrawn"),
    ]

    ACTIVE_STATUSES = (
        STATUS_IN_PROGRESS,
        STATUS_ON_TRACK,
        STATUS_AT_RISK,
        STATUS_PHASE_1,
        STATUS_PHASE_2,
    )

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="internships")
    cohort = models.ForeignKey(
        Cohort, null=True, blank=True, on_delete=models.SET_NULL, related_name="internships"
    )
    preceptor = models.ForeignKey(
        FieldPreceptor,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="internships",
    )
    agency = models.ForeignKey(
        Agency, null=True, blank=True, on_delete=models.SET_NULL, related_name="internships"
    )
    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default=STATUS_NOT_STARTED)
    internship_start_date = models.DateField(null=True, blank=True)
    expected_end_date = models.DateField(null=True, blank=True)
    phase_1_eval_scheduled = models.DateField(null=True, blank=True)
    phase_1_eval_completed = models.BooleanField(default=False)
    phase_2_eval_scheduled = models.DateField(null=True, blank=True)
    phase_2_eval_completed = models.BooleanField(default=False)
    closeout_meeting_date = models.DateField(null=True, blank=True)
    closeout_completed = models.BooleanField(default=False)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["expected_end_date", "student__last_name"]

    def __str__(self):
        return f"{self.student} internship"

    @property
    def phase_1_due(self):
        if self.internship_start_date is None:
            return None
        return self.internship_start_date + PHASE_1_DUE_AFTER_START

    @property
    def phase_2_due(self):
        if self.expected_end_date is None:
            return None
        return self.expected_end_date - PHASE_2_DUE_BEFORE_END

    def to_dict(self):
        def iso(value):
            return value.isoformat() if value else None

        return {
            "id": self.pk,
            "student": {
                "id": self.student_id,
                "name": self.student.full_name,
                "email": self.student.email,
            },
            "cohort_id": self.cohort_id,
            "preceptor": self.preceptor.to_dict() if self.preceptor_id else None,
            "agency": str(self.agency) if self.agency_id else None,
            "status": self.status,
            "internship_start_date": iso(self.internship_start_date),
            "expected_end_date": iso(self.expected_end_date),
            "phase_1_due": iso(self.phase_1_due),
            "phase_1_eval_scheduled": iso(self.phase_1_eval_scheduled),
            "phase_1_eval_completed": self.phase_1_eval_completed,
            "phase_2_due": iso(self.phase_2_due),
            "phase_2_eval_scheduled": iso(self.phase_2_eval_scheduled),
            "phase_2_eval_completed": self.phase_2_eval_completed,
            "closeout_meeting_date": iso(self.closeout_meeting_date),
            "closeout_completed": self.closeout_completed,
            "notes": self.notes,
        }
