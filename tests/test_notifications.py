from datetime import timedelta

import pytest
from django.core import mail
from django.utils import timezone

from notifications.models import (
    Announcement,
    EmailLog,
    NotificationPreference,
    UserNotification,
)
from notifications.services import (
    create_bulk_notifications,
    create_notification,
    notify_admins,
    notify_safely,
    send_email_logged,
    was_notified_since,
)

pytestmark = pytest.mark.django_db


def test_create_notification_normalises_email():
    note = create_notification("Someone@Example.com", "Hi", reference_id=42)
    assert note.user_email == "someone@example.com"
    assert note.reference_id == "42"


def test_create_notification_with_email(instructor):
    create_notification(instructor.email, "Lab moved", "Now in room 4", send_email=True)
    assert len(mail.outbox) == 1
    assert mail.outbox[0].subject == "Lab moved"
    assert EmailLog.objects.get().status == EmailLog.STATUS_SENT


def test_bulk_notifications_dedupe_recipients():
    rows = create_bulk_notifications(["a@example.com", "A@example.com", "", "b@example.com"], "Hello")
    assert sorted(r.user_email for r in rows) == ["a@example.com", "b@example.com"]


def test_notify_admins_skips_excluded(admin_user, superadmin, instructor):
    count = notify_admins("Heads up", exclude_email="ADMIN@example.com")
    assert count == 1
    assert list(UserNotification.objects.values_list("user_email", flat=True)) == [superadmin.email]


def test_notify_safely_swallows_failures():
    def broken(*args, **kwargs):
        raise RuntimeError("down")

    assert notify_safely(broken, "x") is None


def test_was_notified_since():
    create_notification("x@example.com", "Reminder", reference_type="ping", reference_id="2026-03-09")
    hour_ago = timezone.now() - timedelta(hours=1)
    assert was_notified_since("X@example.com", "ping", hour_ago)
    assert was_notified_since("x@example.com", "ping", None, reference_id="2026-03-09")
    assert not was_notified_since("x@example.com", "ping", None, reference_id="2026-03-16")
    assert not was_notified_since("x@example.com", "ping", timezone.now() + timedelta(minutes=1))


def test_muted_category_skips_email(instructor):
    NotificationPreference.objects.create(user=instructor, muted_categories=["scheduling"])
    sent = send_email_logged(
        to=instructor.email,
        subject="Reminder",
        template="notification",
        context={"notification": UserNotification(title="Reminder", message="")},
        category="scheduling",
    )
    assert sent is False
    assert mail.outbox == []
    assert EmailLog.objects.get().status == EmailLog.STATUS_SKIPPED


def test_failed_email_is_logged(monkeypatch, instructor):
    def fail(**kwargs):
        raise ConnectionError("smtp down")

    monkeypatch.setattr("notifications.services.send_templated_email", fail)
    assert not send_email_logged(
        to=instructor.email, subject="Hi", template="notification", context={}
    )
    log = EmailLog.objects.get()
    assert log.status == EmailLog.STATUS_FAILED
    assert "smtp down" in log.error


# ---- Notification endpoints ----


def test_notification_bell(login, instructor):
    create_notification(instructor.email, "One")
    create_notification(instructor.email, "Two")
    create_notification("someone-else@example.com", "Not mine")
    client = login(instructor)

    body = client.get("/api/notifications/").json()
    assert body["unread_count"] == 2
    assert {n["title"] for n in body["notifications"]} == {"One", "Two"}

    first = body["notifications"][0]["id"]
    response = client.put("/api/notifications/read/", data={"id": first}, content_type="application/json")
    assert response.json()["updated"] == 1
    assert client.get("/api/notifications/?unread_only=true").json()["unread_count"] == 1

    response = client.put("/api/notifications/read/", data={}, content_type="application/json")
    assert response.status_code == 400

    response = client.delete("/api/notifications/", data={"all": True}, content_type="application/json")
    assert response.json()["deleted"] == 2
    assert UserNotification.objects.count() == 1


def test_preferences(login, instructor):
    client = login(instructor)
    response = client.put(
        "/api/notifications/preferences/",
        data={"email_enabled": False, "muted_categories": ["labs"]},
        content_type="application/json",
    )
    assert response.json()["preferences"] == {"email_enabled": False, "muted_categories": ["labs"]}

    bad = client.put(
        "/api/notifications/preferences/",
        data={"muted_categories": ["gossip"]},
        content_type="application/json",
    )
    assert bad.status_code == 400



@pytest.mark.parametrize("muted", ["labs", 3, [7]])
def test_muted_categories_must_be_a_list_of_names(login, instructor, muted):
    response = login(instructor).put(
        "/api/notifications/preferences/",
        data={"muted_categories": muted},
        content_type="application/json",
    )
    assert response.status_code == 400
    assert NotificationPreference.objects.get(user=instructor).muted_categories == []


# ---- Announcements ----


def test_admin_creates_announcement(login, admin_user, instructor):
    payload = {"title": "Snow day", "body": "Campus closed"}
    assert login(instructor).post("/api/announcements/", data=payload, content_type="application/json").status_code == 403

    response = login(admin_user).post("/api/announcements/", data=payload, content_type="application/json")
    assert response.status_code == 201
    announcement = response.json()["announcement"]
    assert announcement["priority"] == "info"
    assert announcement["target_audience"] == "all"
    assert announcement["is_active"] is True


def test_live_announcements_most_urgent_first(login, instructor):
    now = timezone.now()
    Announcement.objects.create(title="FYI", body=".", priority="info")
    Announcement.objects.create(title="Urgent", body=".", priority="critical")
    Announcement.objects.create(title="Later", body=".", starts_at=now + timedelta(days=1))
    Announcement.objects.create(title="Expired", body=".", ends_at=now - timedelta(days=1))
    Announcement.objects.create(title="Off", body=".", is_active=False)

    rows = login(instructor).get("/api/announcements/").json()["announcements"]
    assert [a["title"] for a in rows] == ["Urgent", "FYI"]


def test_announcement_read_tracking(login, admin_user, instructor):
    announcement = Announcement.objects.create(title="New policy", body=".")
    client = login(instructor)
    assert client.post(f"/api/announcements/{announcement.pk}/read/").status_code == 200
    assert client.post(f"/api/announcements/{announcement.pk}/read/").status_code == 200
    assert client.get("/api/announcements/").json()["announcements"][0]["is_read"] is True

    rows = login(admin_user).get("/api/announcements/").json()["announcements"]
    assert rows[0]["read_count"] == 1
    assert rows[0]["is_read"] is False
