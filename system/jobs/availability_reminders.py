"""
Weekly availability reminders.

For the current and the next week (Monday to Sunday), every active instructor
or lead instructor who has not entered any availability gets an in-app
reminder and an email. A reminder for a given week is only ever sent once:
the notification's reference_id is the week's Monday.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone

from core.permissions import GROUP_INSTRUCTORS, GROUP_LEAD_INSTRUCTORS
from notifications.models import UserNotification
from notifications.services import create_notification, send_email_logged, was_notified_since
from scheduling.models import InstructorAvailability
from system.config import get_config
from system.jobs.base import format_day

logger = logging.getLogger(__name__)

REFERENCE_TYPE = "availability_reminder"

SENT = "sent"
ALREADY_SENT = "already_sent"
SKIPPED = "skipped"


def week_monday(day):
    return day - timedelta(days=day.weekday())


def weeks_to_check(today):
    """(start, end) for this week and next week."""
    monday = week_monday(today)
    return [(start, start + timedelta(days=6)) for start in (monday, monday + timedelta(days=7))]


def active_instructors():
    User = get_user_model()
    return (
        User.objects.filter(
            is_active=True,
            program_staff__is_active=True,
            groups__name__in=[GROUP_INSTRUCTORS, GROUP_LEAD_INSTRUCTORS],
        )
        .exclude(email="")
        .distinct()
        .order_by("first_name", "last_name")
    )


def remind(instructor, week_start, submitted_ids):
    """Send one instructor's reminder for one week. Returns SENT, ALREADY_SENT or SKIPPED."""
    if instructor.pk in submitted_ids:
        return SKIPPED
    if was_notified_since(instructor.email, REFERENCE_TYPE, None, reference_id=week_start.isoformat()):
        return ALREADY_SENT

    week_label = format_day(week_start)
    create_notification(
        instructor.email,
        "Availability Reminder",
        f"Please submit your availability for the week of {week_label}.",
        type=UserNotification.TYPE_AVAILABILITY,
        category=UserNotification.CATEGORY_SCHEDULING,
        link_url="/scheduling/availability",
        reference_type=REFERENCE_TYPE,
        reference_id=week_start.isoformat(),
    )
    send_email_logged(
        to=instructor.email,
        subject=f"[{settings.APP_NAME}] Availability Reminder - Week of {week_label}",
        template=REFERENCE_TYPE,
        context={
            "first_name": instructor.first_name or instructor.get_username(),
            "week_label": week_label,
            "availability_url": f"{settings.PROGRAM['APP_URL']}/scheduling/availability",
        },
        category=UserNotification.CATEGORY_SCHEDULING,
    )
    return SENT


def run():
    summary = {
        "instructors_checked": 0,
        "weeks_checked": 0,
        "sent": 0,
        "already_sent": 0,
        "skipped": 0,
        "errors": [],
    }
    if not get_config("availability_reminders_enabled", True):
        logger.info("Availability reminders are disabled in system config")
        summary["disabled"] = True
        return summary

    instructors = list(active_instructors())
    summary["instructors_checked"] = len(instructors)
    if not instructors:
        return summary

    for week_start, week_end in weeks_to_check(timezone.localdate()):
        summary["weeks_checked"] += 1
        submitted_ids = set(
            InstructorAvailability.objects.filter(
                date__gte=week_start, date__lte=week_end
            ).values_list("instructor_id", flat=True)
        )
        for instructor in instructors:
            try:
                outcome = remind(instructor, week_start, submitted_ids)
            except Exception as exc:
                logger.warning(
                    "Availability reminder for %s failed", instructor.email, exc_info=True
                )
                summary["errors"].append(f"{instructor.email} ({week_start.isoformat()}): {exc}")
                continue
            summary[outcome] += 1

    return summary
