"""
In-app notifications, announcements and the outbound email log.

Models:
    UserNotification: A message in a user's notification bell
    NotificationPreference: Per-user email opt-out and muted categories
    Announcement: Program-wide banner shown to an audience for a time window
    AnnouncementRead: Which users dismissed which announcement
    EmailLog: One row per email send attempt
"""
from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone


class UserNotification(models.Model):
    """
    Notifications are addressed by email so they can be created for people
    before (or without) a user account, e.g. field preceptors.

    ``reference_type`` / ``reference_id`` identify what the notification is
    about; the scheduled jobs use them to avoid sending the same reminder twice.
    """

    TYPE_GENERAL = "general"
    TYPE_LAB_ASSIGNMENT = "lab_assignment"
    TYPE_LAB_REMINDER = "lab_reminder"
    TYPE_SHIFT = "shift"
    TYPE_SHIFT_TRADE = "shift_trade"
    TYPE_CERT_EXPIRY = "cert_expiry"
    TYPE_AVAILABILITY = "availability"
    TYPE_CLINICAL = "clinical"
    TYPE_ROLE_APPROVED = "role_approved"
    TYPE_SYSTEM = "system"

    TYPE_CHOICES = [
        (TYPE_GENERAL, "General"),
        (TYPE_LAB_ASSIGNMENT, "Lab assignment"),
        (TYPE_LAB_REMINDER, "Lab reminder"),
        (TYPE_SHIFT, "Shift"),
        (TYPE_SHIFT_TRADE, "Shift trade"),
        (TYPE_CERT_EXPIRY, "Certification expiry"),
        (TYPE_AVAILABILITY, "Availability"),
        (TYPE_CLINICAL, "Clinical"),
        (TYPE_ROLE_APPROVED, "Role approved"),
        (TYPE_SYSTEM, "System"),
    ]

    CATEGORY_LABS = "labs"
    CATEGORY_SCHEDULING = "scheduling"
    CATEGORY_CLINICAL = "clinical"
    CATEGORY_SYSTEM = "system"

    CATEGORY_CHOICES = [
        (CATEGORY_LABS, "Labs"),
        (CATEGORY_SCHEDULING, "Scheduling"),
        (CATEGORY_CLINICAL, "Clinical"),
        (CATEGORY_SYSTEM, "System"),
    ]

    user_email = models.EmailField(db_index=True)
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True)
    type = models.CharField(max_length=30, choices=TYPE_CHOICES, default=TYPE_GENERAL)
    category = models.CharField(
        max_length=20, choices=CATEGORY_CHOICES, default=CATEGORY_SYSTEM
    )
    link_url = models.CharField(max_length=500, blank=True)
    reference_type = models.CharField(max_length=60, blank=True, db_index=True)
    reference_id = models.CharField(max_length=100, blank=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = "user_notifications"
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["user_email", "is_read"])]

    def __str__(self):
        return f"{self.user_email}: {self.title}"

    def to_dict(self):
        return {
            "id": self.pk,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "category": self.category,
            "link_url": self.link_url or None,
            "reference_type": self.reference_type or None,
            "reference_id": self.reference_id or None,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat(),
        }


class NotificationPreference(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notification_preference",
    )
    email_enabled = models.BooleanField(default=True)
    muted_categories = models.JSONField(default=list, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def wants_email(self, category):
        return self.email_enabled and category not in (self.muted_categories or [])

    def to_dict(self):
        return {
            "email_enabled": self.email_enabled,
            "muted_categories": list(self.muted_categories or []),
        }


class AnnouncementQuerySet(models.QuerySet):
    def live(self, now=None):
        """Active announcements whose window includes ``now``."""
        now = now or timezone.now()
        return self.filter(is_active=True, starts_at__lte=now).filter(
            Q(ends_at__isnull=True) | Q(ends_at__gte=now)
        )


class Announcement(models.Model):
    PRIORITY_INFO = "info"
    PRIORITY_WARNING = "warning"
    PRIORITY_CRITICAL = "critical"

    PRIORITY_CHOICES = [
        (PRIORITY_INFO, "Info"),
        (PRIORITY_WARNING, "Warning"),
        (PRIORITY_CRITICAL, "Critical"),
    ]

    # Display order, most urgent first.
    PRIORITY_RANK = {PRIORITY_CRITICAL: 0, PRIORITY_WARNING: 1, PRIORITY_INFO: 2}

    AUDIENCE_ALL = "all"
    AUDIENCE_INSTRUCTORS = "instructors"
    AUDIENCE_STUDENTS = "students"

    AUDIENCE_CHOICES = [
        (AUDIENCE_ALL, "Everyone"),
        (AUDIENCE_INSTRUCTORS, "Instructors"),
        (AUDIENCE_STUDENTS, "Students"),
    ]

    title = models.CharField(max_length=255)
    body = models.TextField()
    priority = models.CharField(
        max_length=10, choices=PRIORITY_CHOICES, default=PRIORITY_INFO
    )
    target_audience = models.CharField(
        max_length=20, choices=AUDIENCE_CHOICES, default=AUDIENCE_ALL
    )
    starts_at = models.DateTimeField(default=timezone.now)
    ends_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="announcements_created",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AnnouncementQuerySet.as_manager()

    class Meta:
        db_table = "announcements"
        ordering = ["-created_at"]

    def __str__(self):
        return self.title

    def to_dict(self):
        return {
            "id": self.pk,
            "title": self.title,
            "body": self.body,
            "priority": self.priority,
            "target_audience": self.target_audience,
            "starts_at": self.starts_at.isoformat() if self.starts_at else None,
            "ends_at": self.ends_at.isoformat() if self.ends_at else None,
            "is_active": self.is_active,
            "created_by": self.created_by.email if self.created_by else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class AnnouncementRead(models.Model):
    announcement = models.ForeignKey(
        Announcement, on_delete=models.CASCADE, related_name="reads"
    )
    user_email = models.EmailField()
    read_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["announcement", "user_email"], name="unique_announcement_read"
            )
        ]


class EmailLog(models.Model):
    STATUS_SENT = "sent"
    STATUS_FAILED = "failed"
    STATUS_SKIPPED = "skipped"

    STATUS_CHOICES = [
        (STATUS_SENT, "Sent"),
        (STATUS_FAILED, "Failed"),
        (STATUS_SKIPPED, "Skipped"),
    ]

    to_email = models.EmailField()
    subject = models.CharField(max_length=255)
    template = models.CharField(max_length=100, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES)
    error = models.TextField(blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.to_email} [{self.status}] {self.subject}"
