"""
Internship milestone reminders.

For each active internship whose closeout isn't complete:

- Phase 1 evaluation is due 30 days after the internship starts
- Phase 2 evaluation is due 30 days before the expected end
- Closeout reminders go out 14, 7 and 3 days before the expected end

Evaluation reminders start a week ahead of the due date and stop once the
evaluation is marked complete. The student and every lead instructor / admin
are notified; each (recipient, milestone, internship) is sent at most once a day.
"""
import logging
from datetime import timedelta

from django.utils import timezone

from clinical.models import StudentInternship
from core.permissions import ROLE_LEAD_INSTRUCTOR, users_with_min_role
from notifications.models import UserNotification
from notifications.services import create_notification, was_notified_since
from system.jobs.base import format_day, plural_days

logger = logging.getLogger(__name__)

EVAL_REMINDER_WINDOW_DAYS = 7
CLOSEOUT_REMINDER_DAYS = [14, 7, 3]
DEDUP_LOOKBACK = timedelta(days=1)

REF_PHASE_1 = "internship_phase1_eval_due"
REF_PHASE_2 = "internship_phase2_eval_due"
REF_CLOSEOUT = "internship_closeout_due"
REF_STAFF = "internship_milestone_instructor"


def _due_text(days):
    return "due today" if days == 0 else f"due in {plural_days(days)}"


def milestones_due(internship, today):
    """
    (key, days_until, due_date) for every milestone that needs a reminder today.
    key is "phase1", "phase2" or "closeout".
    """
    due = []
    if internship.phase_1_due and not internship.phase_1_eval_completed:
        days = (internship.phase_1_due - today).days
        if 0 <= days <= EVAL_REMINDER_WINDOW_DAYS:
            due.append(("phase1", days, internship.phase_1_due))
    if internship.phase_2_due and not internship.phase_2_eval_completed:
        days = (internship.phase_2_due - today).days
        if 0 <= days <= EVAL_REMINDER_WINDOW_DAYS:
            due.append(("phase2", days, internship.phase_2_due))
    if internship.expected_end_date:
        days = (internship.expected_end_date - today).days
        if days in CLOSEOUT_REMINDER_DAYS:
            due.append(("closeout", days, internship.expected_end_date))
    return due


def _student_message(key, days, due_date):
    when = format_day(due_date)
    if key == "closeout":
        return (
            REF_CLOSEOUT,
            f"Internship Closeout in {days} Day{'' if days == 1 else 's'}",
            f"Your internship is expected to conclude in {plural_days(days)} on {when}. "
            "Please ensure all evaluations are complete and coordinate your closeout meeting.",
        )
    phase = "1" if key == "phase1" else "2"
    return (
        REF_PHASE_1 if key == "phase1" else REF_PHASE_2,
        f"Phase {phase} Evaluation {'Due Today' if days == 0 else 'Coming Up'}",
        f"Your Phase {phase} internship evaluation is {_due_text(days)} ({when}). "
        "Please coordinate with your preceptor and clinical director to schedule this evaluation.",
    )


def _staff_message(key, days, due_date, student_name):
    when = format_day(due_date)
    if key == "closeout":
        return (
            f"Internship Closeout Due: {student_name}",
            f"{student_name}'s internship concludes in {plural_days(days)} on {when}. "
            "Ensure Phase 1 eval, Phase 2 eval and the closeout meeting are all scheduled.",
        )
    phase = "1" if key == "phase1" else "2"
    return (
        f"Phase {phase} Eval Due: {student_name}",
        f"{student_name}'s Phase {phase} internship evaluation is {_due_text(days)} ({when}). "
        "Evaluation has not been completed yet.",
    )


def run():
    today = timezone.localdate()
    since = timezone.now() - DEDUP_LOOKBACK
    internships = StudentInternship.objects.select_related("student").filter(
        status__in=StudentInternship.ACTIVE_STATUSES, closeout_completed=False
    )
    staff_emails = list(users_with_min_role(ROLE_LEAD_INSTRUCTOR).values_list("email", flat=True))

    summary = {"internships_checked": 0, "notifications_sent": 0, "errors": []}

    def send(label, user_email, reference_type, reference_id, title, message, link_url):
        if was_notified_since(user_email, reference_type, since, reference_id=reference_id):
            return
        try:
            create_notification(
                user_email,
                title,
                message,
                type=UserNotification.TYPE_CLINICAL,
                category=UserNotification.CATEGORY_CLINICAL,
                link_url=link_url,
                reference_type=reference_type,
                reference_id=reference_id,
            )
        except Exception as exc:
            logger.warning("Internship milestone notification failed: %s", label, exc_info=True)
            summary["errors"].append(f"{label}: {exc}")
            return
        summary["notifications_sent"] += 1

    for internship in internships:
        summary["internships_checked"] += 1
        student = internship.student
        for key, days, due_date in milestones_due(internship, today):
            if student.email:
                reference_type, title, message = _student_message(key, days, due_date)
                send(
                    f"{key} for {student.email}",
                    student.email,
                    reference_type,
                    internship.pk,
                    title,
                    message,
                    "/clinical/internships",
                )
            title, message = _staff_message(key, days, due_date, student.full_name)
            for email in staff_emails:
                send(
                    f"{key} staff alert for {email}",
                    email,
                    REF_STAFF,
                    f"{internship.pk}-{key}",
                    title,
                    message,
                    f"/clinical/internships/{internship.pk}",
                )

    return summary
