"""
Hourly system health check.

Five independent checks; each one that finds a problem raises a SystemAlert
unless an unresolved alert of the same type is already open. A failing check
is logged and reported as "check failed" without stopping the others.
"""
import logging
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.utils import timezone

from clinical.models import StudentInternship
from lab_management.models import (
    ClinicalHours,
    Cohort,
    LabDay,
    LabStation,
    Scenario,
    ScenarioAssessment,
    Student,
)
from notifications.models import EmailLog, UserNotification
from scheduling.models import InstructorAvailability, Shift, ShiftSignup
from system.jobs.base import JOB_INTERVALS
from system.models import JobRun, SystemAlert

logger = logging.getLogger(__name__)

STORAGE_LIMIT_MB = 500
STORAGE_WARNING_MB = 400
STORAGE_CRITICAL_MB = 450

EMAIL_FAILURE_THRESHOLD = 10
EMAIL_FAILURE_CRITICAL = 20

SIGNUP_THRESHOLD = 20
SIGNUP_CRITICAL = 40

NOTIFICATIONS_THRESHOLD = 20000
EMAIL_LOG_THRESHOLD = 50000


def _row_sizes():
    """(model, estimated bytes per row)"""
    return [
        (get_user_model(), 512),
        (Student, 768),
        (Cohort, 256),
        (LabDay, 1024),
        (LabStation, 256),
        (Scenario, 2048),
        (ScenarioAssessment, 1024),
        (Shift, 512),
        (ShiftSignup, 256),
        (UserNotification, 1536),
        (EmailLog, 512),
        (ClinicalHours, 512),
        (InstructorAvailability, 256),
        (StudentInternship, 512),
    ]


def maybe_create_alert(alert_type, severity, title, message, metadata=None):
    """Create an alert unless one of the same type is still unresolved."""
    if SystemAlert.objects.filter(alert_type=alert_type, resolved=False).exists():
        return "deduplicated"
    SystemAlert.objects.create(
        alert_type=alert_type,
        severity=severity,
        title=title,
        message=message,
        metadata=metadata,
    )
    logger.warning("System alert raised: %s", title)
    return "created"


def check_storage():
    total_bytes = sum(model.objects.count() * size for model, size in _row_sizes())
    total_mb = total_bytes / 1024 / 1024
    if total_mb <= STORAGE_WARNING_MB:
        return {"triggered": False, "result": f"{total_mb:.1f} MB (ok)"}

    pct = round(total_mb / STORAGE_LIMIT_MB * 100)
    maybe_create_alert(
        SystemAlert.TYPE_STORAGE,
        SystemAlert.SEVERITY_CRITICAL if total_mb > STORAGE_CRITICAL_MB else SystemAlert.SEVERITY_WARNING,
        "High Storage Usage",
        f"Estimated database size is {total_mb:.1f} MB ({pct}% of {STORAGE_LIMIT_MB} MB). "
        "Consider archiving old records.",
        {"total_mb": round(total_mb, 2), "threshold_mb": STORAGE_WARNING_MB},
    )
    return {"triggered": True, "result": f"{total_mb:.1f} MB (above threshold)"}


def check_stale_jobs(now):
    """Jobs that have run before but have not succeeded within their interval."""
    issues = []
    last_runs = {}
    for name, interval in JOB_INTERVALS.items():
        if name == "system-health":
            continue
        runs = JobRun.objects.filter(job_name=name)
        if not runs.exists():
            continue
        last_success = runs.filter(success=True).order_by("-started_at").first()
        if last_success is None:
            issues.append(f"{name} has never completed successfully")
            last_runs[name] = None
            continue
        age = now - last_success.started_at
        last_runs[name] = last_success.started_at.isoformat()
        if age > interval:
            issues.append(f"{name} last succeeded {age.days} days ago")

    if not issues:
        return {"triggered": False, "result": "all jobs healthy"}

    maybe_create_alert(
        SystemAlert.TYPE_CRON_FAILURE,
        SystemAlert.SEVERITY_WARNING,
        "Scheduled Job May Be Stale",
        ". ".join(issues) + ".",
        {"last_successful_runs": last_runs},
    )
    return {"triggered": True, "result": "; ".join(issues)}


def check_error_rate(now):
    since = now - timedelta(hours=24)
    failed = EmailLog.objects.filter(status=EmailLog.STATUS_FAILED, created_at__gte=since).count()
    if failed <= EMAIL_FAILURE_THRESHOLD:
        return {"triggered": False, "result": f"{failed} failed emails (ok)"}

    maybe_create_alert(
        SystemAlert.TYPE_ERROR_RATE,
        SystemAlert.SEVERITY_CRITICAL if failed > EMAIL_FAILURE_CRITICAL else SystemAlert.SEVERITY_WARNING,
        "High Email Failure Rate",
        f"{failed} emails failed to send in the last 24 hours "
        f"(threshold: {EMAIL_FAILURE_THRESHOLD}). Check the email provider.",
        {"failed_count": failed, "threshold": EMAIL_FAILURE_THRESHOLD, "since": since.isoformat()},
    )
    return {"triggered": True, "result": f"{failed} failed emails (above threshold)"}


def check_login_anomalies(now):
    since = now - timedelta(hours=24)
    signups = get_user_model().objects.filter(date_joined__gte=since).count()
    if signups <= SIGNUP_THRESHOLD:
        return {"triggered": False, "result": f"{signups} sign-ups (ok)"}

    maybe_create_alert(
        SystemAlert.TYPE_LOGIN_ANOMALY,
        SystemAlert.SEVERITY_CRITICAL if signups > SIGNUP_CRITICAL else SystemAlert.SEVERITY_WARNING,
        "Unusual Sign-up Volume",
        f"{signups} new accounts were created in the last 24 hours "
        f"(threshold: {SIGNUP_THRESHOLD}). This may indicate unusual sign-up activity.",
        {"signup_count": signups, "threshold": SIGNUP_THRESHOLD, "since": since.isoformat()},
    )
    return {"triggered": True, "result": f"{signups} sign-ups (above threshold)"}


def check_performance():
    notifications = UserNotification.objects.count()
    email_log = EmailLog.objects.count()
    issues = []
    if notifications > NOTIFICATIONS_THRESHOLD:
        issues.append(f"user_notifications has {notifications:,} rows (consider pruning)")
    if email_log > EMAIL_LOG_THRESHOLD:
        issues.append(f"email log has {email_log:,} rows (consider archiving)")

    if not issues:
        return {"triggered": False, "result": "all table sizes healthy"}

    maybe_create_alert(
        SystemAlert.TYPE_PERFORMANCE,
        SystemAlert.SEVERITY_INFO,
        "Large Tables Detected",
        ". ".join(issues) + ". Large tables may slow down queries over time.",
        {"notifications_count": notifications, "email_log_count": email_log},
    )
    return {"triggered": True, "result": "; ".join(issues)}


def _safely(name, check, *args):
    try:
        return check(*args)
    except Exception:
        logger.warning("Health check %s failed", name, exc_info=True)
        return {"triggered": False, "result": "check failed"}


def run():
    now = timezone.now()
    checks = {
        "storage": _safely("storage", check_storage),
        "cron_health": _safely("cron_health", check_stale_jobs, now),
        "error_rate": _safely("error_rate", check_error_rate, now),
        "login_anomalies": _safely("login_anomalies", check_login_anomalies, now),
        "performance": _safely("performance", check_performance),
    }
    return {
        "alerts_created": sum(1 for c in checks.values() if c["triggered"]),
        "checks": checks,
        "checked_at": now.isoformat(),
    }
