"""
Instructor scheduling: availability, open shifts, signups and shift trades.

Models:
    InstructorAvailability: Days/times an instructor says they can work
    Shift: An open shift posted by a director or admin
    ShiftSignup: An instructor's signup for a shift (one per instructor per shift)
    ShiftTradeRequest: Request to hand a confirmed shift over to someone else

Shift trade workflow
--------------------
    pending --accept--> accepted --approve--> approved
       |                   |
       +--decline--> declined
       +--cancel---> cancelled <--cancel--+

accept/decline require ``pending``; approve requires ``accepted``; cancel
works from either open state. Approval moves the shift from the requester
to the accepting instructor.
"""
from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.db import models, transaction
from django.utils import timezone

from core.api import user_summary
from core.exceptions import WorkflowError
from core.models import AuditModel


class InstructorAvailability(models.Model):
    instructor = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="availability"
    )
    date = models.DateField(db_index=True)
    is_all_day = models.BooleanField(default=True)
    start_time = models.TimeField(null=True, blank=True)
    end_time = models.TimeField(null=True, blank=True)
    notes = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "Instructor availability"
        ordering = ["date", "start_time"]
        constraints = [
            models.UniqueConstraint(
                fields=["instructor", "date", "start_time"], name="unique_availability_slot"
            )
        ]

    def to_dict(self):
        return {
            "id": self.pk,
            "instructor_id": self.instructor_id,
            "date": self.date.isoformat(),
            "is_all_day": self.is_all_day,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "notes": self.notes,
        }


class Shift(AuditModel):
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    date = models.DateField(db_index=True)
    start_time = models.TimeField()
    end_time = models.TimeField()
    location = models.CharField(max_length=255, blank=True)
    department = models.CharField(max_length=100, blank=True)
    min_instructors = models.PositiveSmallIntegerField(default=1)
    max_instructors = models.PositiveSmallIntegerField(null=True, blank=True)
    is_cancelled = models.BooleanField(default=False)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "shifts"
        ordering = ["date", "start_time"]

    def __str__(self):
        return f"{self.title} ({self.date})"

    def confirmed_count(self):
        return self.signups.filter(status=ShiftSignup.STATUS_CONFIRMED).count()

    def is_full(self, confirmed=None):
        if self.max_instructors is None:
            return False
        if confirmed is None:
            confirmed = self.confirmed_count()
        return confirmed >= self.max_instructors

    def to_dict(self):
        return {
            "id": self.pk,
            "title": self.title,
            "description": self.description,
            "date": self.date.isoformat(),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "location": self.location,
            "department": self.department,
            "min_instructors": self.min_instructors,
            "max_instructors": self.max_instructors,
            "is_cancelled": self.is_cancelled,
            "created_by": self.created_by.email if self.created_by else None,
        }


class ShiftSignup(models.Model):
    STATUS_PENDING = "pending"
    STATUS_CONFIRMED = "confirmed"
    STATUS_DECLINED = "declined"
    STATUS_WITHDRAWN = "withdrawn"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_DECLINED, "Declined"),
        (STATUS_WITHDRAWN, "Withdrawn"),
    ]

    shift = models.ForeignKey(Shift, on_delete=models.CASCADE, related_name="signups")
    instructor = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="shift_signups"
    )
    signup_start_time = models.TimeField(null=True, blank=True)
    signup_end_time = models.TimeField(null=True, blank=True)
    is_partial = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    confirmed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="shift_signups_confirmed",
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)
    declined_reason = models.CharField(max_length=500, blank=True)
    notes = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "shift_signups"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(fields=["shift", "instructor"], name="unique_shift_signup")
        ]

    def __str__(self):
        return f"{self.instructor} -> {self.shift} [{self.status}]"

    @property
    def is_active(self):
        return self.status != self.STATUS_WITHDRAWN

    def confirm(self, by):
        if self.status == self.STATUS_CONFIRMED:
            raise WorkflowError("Signup is already confirmed")
        if self.status == self.STATUS_WITHDRAWN:
            raise WorkflowError("Cannot confirm a withdrawn signup")
        if self.shift.is_full():
            raise WorkflowError("Shift is already full")
        self.status = self.STATUS_CONFIRMED
        self.confirmed_by = by
        self.confirmed_at = timezone.now()
        self.declined_reason = ""
        self.save()

    def decline(self, by, reason=""):
        if self.status == self.STATUS_WITHDRAWN:
            raise WorkflowError("Cannot decline a withdrawn signup")
        self.status = self.STATUS_DECLINED
        self.confirmed_by = by
        self.confirmed_at = None
        self.declined_reason = reason or ""
        self.save()

    def withdraw(self):
        if self.status == self.STATUS_WITHDRAWN:
            raise WorkflowError("Signup is already withdrawn")
        self.status = self.STATUS_WITHDRAWN
        self.save(update_fields=["status", "updated_at"])

    def to_dict(self):
        return {
            "id": self.pk,
            "shift_id": self.shift_id,
            "instructor": user_summary(self.instructor),
            "signup_start_time": (
                self.signup_start_time.isoformat() if self.signup_start_time else None
            ),
            "signup_end_time": self.signup_end_time.isoformat() if self.signup_end_time else None,
            "is_partial": self.is_partial,
            "status": self.status,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
            "declined_reason": self.declined_reason or None,
            "notes": self.notes or None,
        }


class ShiftTradeRequest(models.Model):
    STATUS_PENDING = "pending"
    STATUS_ACCEPTED = "accepted"
    STATUS_APPROVED = "approved"
    STATUS_DECLINED = "declined"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_ACCEPTED, "Accepted"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_DECLINED, "Declined"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    OPEN_STATUSES = (STATUS_PENDING, STATUS_ACCEPTED)

    requester = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="trade_requests_made"
    )
    requester_shift = models.ForeignKey(
        Shift, on_delete=models.CASCADE, related_name="trade_requests"
    )
    target_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="trade_requests_received",
    )
    target_shift = models.ForeignKey(
        Shift,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="trade_requests_offered",
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    reason = models.TextField(blank=True)
    response_note = models.TextField(blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="trade_requests_approved",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "shift_trade_requests"
        ordering = ["-created_at"]

    def __str__(self):
        return f"Trade #{self.pk} {self.requester_shift} [{self.status}]"

    @property
    def is_open(self):
        return self.status in self.OPEN_STATUSES

    def _lock(self):
        """Re-read the row under a row lock; call inside a transaction."""
        locked = type(self).objects.select_for_update().get(pk=self.pk)
        self.status = locked.status
        self.target_user_id = locked.target_user_id
        return locked

    @transaction.atomic
    def cancel(self, by):
        """Withdraw the request. Only the requester may cancel, while it is open."""
        self._lock()
        if by.pk != self.requester_id:
            raise PermissionDenied("Only the requester can cancel this request")
        if not self.is_open:
            raise WorkflowError("Cannot cancel a request that is already resolved")
        self.status = self.STATUS_CANCELLED
        self.save(update_fields=["status", "updated_at"])

    @transaction.atomic
    def accept(self, by, note=""):
        """Another instructor offers to take the shift; awaits approval."""
        self._lock()
        if by.pk == self.requester_id:
            raise WorkflowError("You cannot accept your own trade request")
        if self.status != self.STATUS_PENDING:
            raise WorkflowError("Can only accept/decline pending requests")
        self.status = self.STATUS_ACCEPTED
        self.target_user = by
        self.response_note = note or ""
        self.save(update_fields=["status", "target_user", "response_note", "updated_at"])

    @transaction.atomic
    def decline(self, by, note=""):
        self._lock()
        if self.status != self.STATUS_PENDING:
            raise WorkflowError("Can only accept/decline pending requests")
        self.status = self.STATUS_DECLINED
        self.target_user = by
        self.response_note = note or ""
        self.save(update_fields=["status", "target_user", "response_note", "updated_at"])

    @transaction.atomic
    def approve(self, by):
        """
        Final approval: hand the requester's shift to the accepting instructor.

        The requester's confirmed signup is withdrawn, the target's signup on
        the same shift is confirmed (created if they had none) and the
        request is marked approved, all in one transaction.
        """
        self._lock()
        if self.status != self.STATUS_ACCEPTED:
            raise WorkflowError("Can only approve requests that have been accepted")
        if self.target_user_id is None:
            raise WorkflowError("No user has accepted this trade yet")

        now = timezone.now()
        shift = self.requester_shift

        ShiftSignup.objects.filter(
            shift=shift,
            instructor_id=self.requester_id,
            status=ShiftSignup.STATUS_CONFIRMED,
        ).update(status=ShiftSignup.STATUS_WITHDRAWN, updated_at=now)

        signup = (
            ShiftSignup.objects.select_for_update()
            .filter(shift=shift, instructor_id=self.target_user_id)
            .first()
        )
        if signup is None:
            ShiftSignup.objects.create(
                shift=shift,
                instructor_id=self.target_user_id,
                signup_start_time=shift.start_time,
                signup_end_time=shift.end_time,
                is_partial=False,
                status=ShiftSignup.STATUS_CONFIRMED,
                confirmed_by=by,
                confirmed_at=now,
                notes=f"Trade approved by {by.get_full_name() or by.email}",
            )
        else:
            signup.status = ShiftSignup.STATUS_CONFIRMED
            signup.confirmed_by = by
            signup.confirmed_at = now
            signup.save(update_fields=["status", "confirmed_by", "confirmed_at", "updated_at"])

        self.status = self.STATUS_APPROVED
        self.approved_by = by
        self.approved_at = now
        self.save(update_fields=["status", "approved_by", "approved_at", "updated_at"])

    def to_dict(self):
        shift = self.requester_shift
        return {
            "id": self.pk,
            "status": self.status,
            "requester": user_summary(self.requester),
            "requester_shift": {
                "id": shift.pk,
                "title": shift.title,
                "date": shift.date.isoformat(),
                "start_time": shift.start_time.isoformat(),
                "end_time": shift.end_time.isoformat(),
            },
            "target_user": user_summary(self.target_user),
            "target_shift_id": self.target_shift_id,
            "reason": self.reason or None,
            "response_note": self.response_note or None,
            "approved_by": user_summary(self.approved_by),
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
