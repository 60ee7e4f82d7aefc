"""
System administration tables.

Models:
    SystemConfig: Runtime-editable settings, one JSON value per key
    SystemAlert: Problems found by the system health job
    JobRun: One row per scheduled job execution
"""
from django.conf import settings
from django.db import models
from django.utils import timezone


class SystemConfig(models.Model):
    CATEGORY_EMAIL = "email"
    CATEGORY_NOTIFICATIONS = "notifications"
    CATEGORY_SECURITY = "security"
    CATEGORY_FEATURES = "features"
    CATEGORY_BRANDING = "branding"
    CATEGORY_LEGAL = "legal"

    CATEGORY_CHOICES = [
        (CATEGORY_EMAIL, "Email"),
        (CATEGORY_NOTIFICATIONS, "Notifications"),
        (CATEGORY_SECURITY, "Security"),
        (CATEGORY_FEATURES, "Features"),
        (CATEGORY_BRANDING, "Branding"),
        (CATEGORY_LEGAL, "Legal"),
    ]

    config_key = models.CharField(max_length=100, unique=True)
    config_value = models.JSONField(null=True, blank=True)
    category = models.CharField(max_length=30, choices=CATEGORY_CHOICES)
    description = models.TextField(blank=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "system_config"
        verbose_name = "System setting"
        ordering = ["category", "config_key"]

    def __str__(self):
        return self.config_key

    def to_dict(self):
        return {
            "id": self.pk,
            "config_key": self.config_key,
            "config_value": self.config_value,
            "category": self.category,
            "description": self.description,
            "updated_by": self.updated_by.email if self.updated_by_id else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class SystemAlert(models.Model):
    TYPE_STORAGE = "storage"
    TYPE_CRON_FAILURE = "cron_failure"
    TYPE_ERROR_RATE = "error_rate"
    TYPE_LOGIN_ANOMALY = "login_anomaly"
    TYPE_PERFORMANCE = "performance"

    TYPE_CHOICES = [
        (TYPE_STORAGE, "Storage"),
        (TYPE_CRON_FAILURE, "Scheduled job failure"),
        (TYPE_ERROR_RATE, "Error rate"),
        (TYPE_LOGIN_ANOMALY, "Login anomaly"),
        (TYPE_PERFORMANCE, "Performance"),
    ]

    SEVERITY_INFO = "info"
    SEVERITY_WARNING = "warning"
    SEVERITY_CRITICAL = "critical"

    SEVERITY_CHOICES = [
        (SEVERITY_INFO, "Info"),
        (SEVERITY_WARNING, "Warning"),
        (SEVERITY_CRITICAL, "Critical"),
    ]

    # Lower sorts first
    SEVERITY_RANK = {SEVERITY_CRITICAL: 0, SEVERITY_WARNING: 1, SEVERITY_INFO: 2}

    alert_type = models.CharField(max_length=30, choices=TYPE_CHOICES)
    severity = models.CharField(max_length=20, choices=SEVERITY_CHOICES, default=SEVERITY_WARNING)
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True)
    metadata = models.JSONField(null=True, blank=True)
    resolved = models.BooleanField(default=False)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    resolved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "system_alerts"
        ordering = ["resolved", "-created_at"]

    def __str__(self):
        return f"[{self.severity}] {self.title}"

    def resolve(self, by):
        self.resolved = True
        self.resolved_by = by
        self.resolved_at = timezone.now()
        self.save(update_fields=["resolved", "resolved_by", "resolved_at"])

    def reopen(self):
        self.resolved = False
        self.resolved_by = None
        self.resolved_at = None
        self.save(update_fields=["resolved", "resolved_by", "resolved_at"])

    def to_dict(self):
        return {
            "id": self.pk,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "title": self.title,
            "message": self.message,
            "metadata": self.metadata,
            "resolved": self.resolved,
            "resolved_by": self.resolved_by.email if self.resolved_by_id else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "created_at": self.created_at.isoformat(),
        }


class JobRun(models.Model):
    job_name = models.CharField(max_length=60, db_index=True)
    started_at = models.DateTimeField(default=timezone.now)
    finished_at = models.DateTimeField(null=True, blank=True)
    success = models.BooleanField(default=False)
    summary = models.JSONField(default=dict, blank=True)
    error = models.TextField(blank=True)

    class Meta:
        ordering = ["-started_at"]
        get_latest_by = "started_at"

    def __str__(self):
        return f"{self.job_name} @ {self.started_at:%Y-%m-%d %H:%M}"

    def to_dict(self):
        return {
            "id": self.pk,
            "job_name": self.job_name,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "success": self.success,
            "summary": self.summary,
            "error": self.error,
        }
