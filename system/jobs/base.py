"""
Running scheduled jobs and recording each run as a JobRun.
"""
import logging
import time
from datetime import timedelta

from django.utils import timezone

from system.models import JobRun

logger = logging.getLogger(__name__)

# How often each job is scheduled. A job whose last successful run is older
# than this is reported as stale by the system health check.
JOB_INTERVALS = {
    "cert-expiry": timedelta(days=8),
    "availability-reminders": timedelta(days=8),
    "internship-milestones": timedelta(days=2),
    "system-health": timedelta(hours=2),
}


def format_day(value):
    """Mar 15, 2026"""
    return f"{value:%b} {value.day}, {value.year}"


def plural_days(n):
    return f"{n} day{'' if n == 1 else 's'}"


def execute(name, func):
    """
    Run ``func`` as job ``name``; returns its summary dict plus duration_ms.

    Failures are recorded on the JobRun and re-raised.
    """
    run = JobRun.objects.create(job_name=name)
    started = time.monotonic()
    logger.info("Job %s started", name)

    try:
        summary = func()
    except Exception as exc:
        run.finished_at = timezone.now()
        run.error = str(exc)[:2000]
        run.summary = {"duration_ms": int((time.monotonic() - started) * 1000)}
        run.save(update_fields=["finished_at", "error", "summary"])
        logger.exception("Job %s failed", name)
        raise

    summary["duration_ms"] = int((time.monotonic() - started) * 1000)
    run.finished_at = timezone.now()
    run.success = True
    run.summary = summary
    run.save(update_fields=["finished_at", "success", "summary"])
    logger.info("Job %s completed: %s", name, summary)
    return summary
