"""
Scheduled jobs.

Each job is a plain function returning a summary dict. They are run either
by the ``run_job`` management command or by the scheduler calling
``GET /api/cron/<name>/``.
"""
from system.jobs import availability_reminders, cert_expiry, internship_milestones, system_health
from system.jobs.base import execute

JOBS = {
    "cert-expiry": cert_expiry.run,
    "availability-reminders": availability_reminders.run,
    "system-health": system_health.run,
    "internship-milestones": internship_milestones.run,
}


def run_job(name):
    """Run the job registered as ``name``. Raises KeyError for unknown jobs."""
    return execute(name, JOBS[name])
