from datetime import datetime, time, timedelta

import pytest
from django.core import mail
from django.utils import timezone

from clinical.models import Agency, FieldPreceptor, StudentInternship
from core.models import Endorsement
from notifications.models import EmailLog, UserNotification
from scheduling.models import InstructorAvailability
from system.jobs import availability_reminders, cert_expiry, internship_milestones, system_health
from system.jobs.base import format_day, plural_days
from system.models import JobRun, SystemAlert, SystemConfig

pytestmark = pytest.mark.django_db


def test_formatting_helpers():
    assert format_day(datetime(2026, 3, 5)) == "Mar 5, 2026"
    assert plural_days(1) == "1 day"
    assert plural_days(14) == "14 days"


# ---- Certification expiry ----


@pytest.fixture
def today():
    return timezone.localdate()


def _titles(email):
    return list(UserNotification.objects.filter(user_email=email).values_list("title", flat=True))


def test_preceptor_cert_on_threshold_day(today, admin_user):
    agency = Agency.objects.create(name="Metro Fire")
    preceptor = FieldPreceptor.objects.create(
        first_name="Pat",
        last_name="Medic",
        email="pat@metrofire.example.com",
        agency=agency,
        snhd_cert_expires=today + timedelta(days=30),
    )
    FieldPreceptor.objects.create(
        first_name="Not",
        last_name="Yet",
        email="notyet@example.com",
        snhd_cert_expires=today + timedelta(days=45),
    )

    summary = cert_expiry.run()
    assert summary == {"records_checked": 2, "notifications_sent": 2, "errors": []}
    assert _titles(preceptor.email) == ["SNHD Certification Expires in 30 Days"]
    assert _titles(admin_user.email) == ["Preceptor Cert Expiry: Pat Medic"]
    assert _titles("notyet@example.com") == []

    # Same day again: nothing new.
    assert cert_expiry.run()["notifications_sent"] == 0


def test_endorsement_expiry(today, admin_user, instructor):
    expires = timezone.make_aware(datetime.combine(today + timedelta(days=14), time(12)))
    Endorsement.objects.create(
        user=instructor, endorsement_type=Endorsement.MENTOR, title="Field mentor", expires_at=expires
    )

    summary = cert_expiry.run()
    assert summary["notifications_sent"] == 2
    assert _titles(instructor.email) == ["Endorsement Expires in 14 Days"]
    assert _titles(admin_user.email) == ["Instructor Endorsement Expiring: Ivy Instructor"]
    note = UserNotification.objects.get(user_email=instructor.email)
    assert "Field mentor" in note.message
    assert "14 days" in note.message


def test_old_notifications_do_not_block_reminders(today, admin_user):
    FieldPreceptor.objects.create(
        first_name="Pat", last_name="Medic", email="pat@example.com",
        snhd_cert_expires=today + timedelta(days=14),
    )
    UserNotification.objects.create(
        user_email="pat@example.com",
        title="SNHD Certification Expires in 30 Days",
        reference_type=cert_expiry.REF_PRECEPTOR_REMINDER,
        created_at=timezone.now() - timedelta(days=16),
    )
    assert cert_expiry.run()["notifications_sent"] == 2


# ---- Availability reminders ----


def test_availability_reminders(today, instructor, instructor2, lead, admin_user, guest):
    monday = today - timedelta(days=today.weekday())
    InstructorAvailability.objects.create(instructor=instructor2, date=monday + timedelta(days=2))

    summary = availability_reminders.run()
    assert summary["instructors_checked"] == 3
    assert summary["weeks_checked"] == 2
    assert summary["sent"] == 5
    assert summary["skipped"] == 1
    assert summary["already_sent"] == 0

    reminders = UserNotification.objects.filter(reference_type="availability_reminder")
    assert set(reminders.filter(user_email=instructor.email).values_list("reference_id", flat=True)) == {
        monday.isoformat(),
        (monday + timedelta(days=7)).isoformat(),
    }
    assert not reminders.filter(user_email__in=[admin_user.email, guest.email]).exists()
    assert len(mail.outbox) == 5
    assert mail.outbox[0].subject.startswith("[PMI Tools] Availability Reminder - Week of ")
    assert EmailLog.objects.filter(status=EmailLog.STATUS_SENT).count() == 5

    again = availability_reminders.run()
    assert again["sent"] == 0
    assert again["already_sent"] == 5


def test_availability_reminders_can_be_disabled(instructor):
    SystemConfig.objects.create(
        config_key="availability_reminders_enabled",
        config_value=False,
        category=SystemConfig.CATEGORY_NOTIFICATIONS,
    )
    summary = availability_reminders.run()
    assert summary["disabled"] is True
    assert summary["sent"] == 0
    assert not UserNotification.objects.exists()


def test_inactive_staff_are_not_reminded(instructor):
    instructor.program_staff.is_active = False
    instructor.program_staff.save()
    assert availability_reminders.run()["instructors_checked"] == 0


# ---- Internship milestones ----


@pytest.fixture
def internship(today, make_student):
    return StudentInternship.objects.create(
        student=make_student(),
        status=StudentInternship.STATUS_IN_PROGRESS,
        internship_start_date=today - timedelta(days=25),
        expected_end_date=today + timedelta(days=14),
    )


def test_milestones_due(today, internship):
    keys = [key for key, _, _ in internship_milestones.milestones_due(internship, today)]
    assert keys == ["phase1", "closeout"]

    internship.phase_1_eval_completed = True
    keys = [key for key, _, _ in internship_milestones.milestones_due(internship, today)]
    assert keys == ["closeout"]


def test_phase_two_window(today, internship):
    internship.internship_start_date = today - timedelta(days=90)
    internship.expected_end_date = today + timedelta(days=30)
    due = internship_milestones.milestones_due(internship, today)
    assert due == [("phase2", 0, today)]


def test_internship_milestone_notifications(internship, lead, admin_user):
    summary = internship_milestones.run()
    assert summary["internships_checked"] == 1
    # student: phase 1 + closeout; lead and admin: phase 1 + closeout each
    assert summary["notifications_sent"] == 6

    student_email = internship.student.email
    assert sorted(_titles(student_email)) == ["Internship Closeout in 14 Days", "Phase 1 Evaluation Coming Up"]
    assert UserNotification.objects.filter(
        user_email=lead.email,
        reference_type=internship_milestones.REF_STAFF,
        reference_id=f"{internship.pk}-closeout",
    ).exists()

    assert internship_milestones.run()["notifications_sent"] == 0


def test_finished_internships_are_skipped(internship, lead):
    internship.status = StudentInternship.STATUS_COMPLETED
    internship.save()
    assert internship_milestones.run() == {
        "internships_checked": 0,
        "notifications_sent": 0,
        "errors": [],
    }


# ---- System health ----


def test_alerts_are_deduplicated():
    assert system_health.maybe_create_alert("storage", "warning", "Disk", "80%") == "created"
    assert system_health.maybe_create_alert("storage", "critical", "Disk", "95%") == "deduplicated"
    SystemAlert.objects.update(resolved=True)
    assert system_health.maybe_create_alert("storage", "warning", "Disk", "80%") == "created"


def test_healthy_system_creates_no_alerts():
    summary = system_health.run()
    assert summary["alerts_created"] == 0
    assert set(summary["checks"]) == {
        "storage",
        "cron_health",
        "error_rate",
        "login_anomalies",
        "performance",
    }
    assert not SystemAlert.objects.exists()


def test_stale_job_raises_alert():
    JobRun.objects.create(
        job_name="cert-expiry", success=True, started_at=timezone.now() - timedelta(days=10)
    )
    result = system_health.check_stale_jobs(timezone.now())
    assert result["triggered"] is True
    alert = SystemAlert.objects.get()
    assert alert.alert_type == SystemAlert.TYPE_CRON_FAILURE
    assert "cert-expiry" in alert.message


def test_never_run_jobs_are_not_stale():
    assert system_health.check_stale_jobs(timezone.now())["triggered"] is False


def test_email_failures_raise_alert():
    EmailLog.objects.bulk_create(
        [EmailLog(to_email=f"u{n}@example.com", subject="x", status=EmailLog.STATUS_FAILED) for n in range(11)]
    )
    summary = system_health.run()
    assert summary["alerts_created"] == 1
    alert = SystemAlert.objects.get()
    assert alert.alert_type == SystemAlert.TYPE_ERROR_RATE
    assert alert.severity == SystemAlert.SEVERITY_WARNING
