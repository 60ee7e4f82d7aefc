"""
Core models for the paramedic program tools.

This module contains the person-related models shared across every app.

Models:
    AuditModel: Abstract base model with audit fields (created_at, created_by, etc.)
    ProgramStaff: Profile for users who have been granted access to the program tools
    Endorsement: Special authority (director, mentor, ...) layered on top of a role
"""
from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone


class AuditModel(models.Model):
    """
    Abstract base model that provides audit fields.

    All models that need audit tracking should inherit from this.
    Provides: created_at, created_by, last_updated_at, last_updated_by
    """

    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="%(app_label)s_%(class)s_created",
    )
    last_updated_at = models.DateTimeField(auto_now=True)
    last_updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="%(app_label)s_%(class)s_updated",
    )

    class Meta:
        abstract = True


class ProgramStaff(AuditModel):
    """
    Profile for a program staff member (instructor, lead instructor, admin).

    Users who sign up stay "pending" until an admin creates this profile and
    puts them in a role group. The role itself comes from group membership,
    see core.permissions.get_role().

    Attributes:
        user (User): Django user account (one-to-one)
        phone (str): Contact number shown on schedules
        avatar_url (str): Profile picture, usually from Google
        is_active (bool): Inactive staff lose app access but keep their history
        last_login_at (datetime): Updated on every sign-in
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="program_staff",
        help_text="Django user account for this staff member",
    )
    phone = models.CharField(max_length=40, blank=True)
    avatar_url = models.URLField(blank=True)
    is_active = models.BooleanField(default=True)
    last_login_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Program Staff"
        verbose_name_plural = "Program Staff"
        ordering = ["user__last_name", "user__first_name"]

    def __str__(self):
        return self.user.get_full_name() or self.user.email or self.user.username


class EndorsementQuerySet(models.QuerySet):
    def current(self):
        """Active endorsements that have not expired."""
        now = timezone.now()
        return self.filter(is_active=True).filter(
            Q(expires_at__isnull=True) | Q(expires_at__gt=now)
        )


class Endorsement(models.Model):
    """
    Special authority granted to a user on top of their role.

    A director can create shifts and approve shift trades without being an
    admin; mentors and preceptors are tracked for clinical placements.
    """

    DIRECTOR = "director"
    MENTOR = "mentor"
    PRECEPTOR = "preceptor"
    LEAD_INSTRUCTOR = "lead_instructor"

    TYPE_CHOICES = [
        (DIRECTOR, "Director"),
        (MENTOR, "Mentor"),
        (PRECEPTOR, "Preceptor"),
        (LEAD_INSTRUCTOR, "Lead Instructor"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="endorsements",
    )
    endorsement_type = models.CharField(max_length=30, choices=TYPE_CHOICES)
    title = models.CharField(max_length=200, blank=True)
    granted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="endorsements_granted",
    )
    granted_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    objects = EndorsementQuerySet.as_manager()

    class Meta:
        ordering = ["-granted_at"]
        indexes = [models.Index(fields=["user", "endorsement_type"])]

    def __str__(self):
        return f"{self.user} - {self.get_endorsement_type_display()}"

    def to_dict(self):
        return {
            "id": self.pk,
            "user_id": self.user_id,
            "user_email": self.user.email,
            "endorsement_type": self.endorsement_type,
            "title": self.title,
            "granted_at": self.granted_at.isoformat() if self.granted_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "is_active": self.is_active,
        }
