import json
from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from system.config import get_config, seed_defaults
from system.jobs import JOBS
from system.models import JobRun, SystemAlert, SystemConfig

pytestmark = pytest.mark.django_db


# ---- Config ----


def test_seed_defaults_is_idempotent():
    created, updated = seed_defaults()
    assert created == SystemConfig.objects.count()
    assert updated == 0
    assert seed_defaults() == (0, 0)

    SystemConfig.objects.filter(config_key="primary_color").update(config_value="#000000")
    seed_defaults(overwrite=True)
    assert get_config("primary_color") == "#1d4ed8"
    assert get_config("missing", "fallback") == "fallback"


def test_admin_reads_config(login, admin_user, instructor):
    seed_defaults()
    assert login(instructor).get("/api/admin/config/").status_code == 403
    config = login(admin_user).get("/api/admin/config/").json()["config"]
    assert config["program_name"]["config_value"] == "Paramedic Program"


def test_only_superadmin_updates_config(login, admin_user, superadmin):
    seed_defaults()
    payload = {"config_key": "program_name", "config_value": "EMS Academy"}
    assert login(admin_user).put("/api/admin/config/", data=payload, content_type="application/json").status_code == 403

    response = login(superadmin).put("/api/admin/config/", data=payload, content_type="application/json")
    assert response.status_code == 200
    assert get_config("program_name") == "EMS Academy"
    assert SystemConfig.objects.get(config_key="program_name").updated_by == superadmin


def test_unknown_config_key_is_404(login, superadmin):
    response = login(superadmin).put(
        "/api/admin/config/",
        data={"config_key": "nope", "config_value": 1},
        content_type="application/json",
    )
    assert response.status_code == 404
    assert response.json()["error"] == "Config key not found"


def test_config_value_is_required(login, superadmin):
    seed_defaults()
    response = login(superadmin).put(
        "/api/admin/config/", data={"config_key": "program_name"}, content_type="application/json"
    )
    assert response.status_code == 400


# ---- Alerts ----


def test_alerts_sorted_and_counted(login, admin_user):
    old = timezone.now() - timedelta(hours=3)
    info = SystemAlert.objects.create(alert_type="performance", severity="info", title="Big tables")
    critical = SystemAlert.objects.create(
        alert_type="storage", severity="critical", title="Disk", created_at=old
    )
    done = SystemAlert.objects.create(alert_type="error_rate", severity="critical", title="Email")
    done.resolve(admin_user)

    body = login(admin_user).get("/api/admin/system-alerts/").json()
    assert [a["id"] for a in body["alerts"]] == [critical.pk, info.pk, done.pk]
    assert body["stats"]["unresolved"] == 2
    assert body["stats"]["critical"] == 1
    assert body["stats"]["resolved_today"] == 1
    assert body["stats"]["last_health_check"] is None

    unresolved = login(admin_user).get("/api/admin/system-alerts/?resolved=false").json()["alerts"]
    assert {a["id"] for a in unresolved} == {critical.pk, info.pk}


def test_resolve_and_reopen_alert(login, admin_user):
    alert = SystemAlert.objects.create(alert_type="storage", title="Disk")
    client = login(admin_user)
    response = client.patch(
        "/api/admin/system-alerts/", data={"id": alert.pk, "resolved": True}, content_type="application/json"
    )
    assert response.json()["alert"]["resolved_by"] == admin_user.email

    client.patch(
        "/api/admin/system-alerts/", data={"id": alert.pk, "resolved": False}, content_type="application/json"
    )
    alert.refresh_from_db()
    assert not alert.resolved
    assert alert.resolved_at is None


# ---- Cron endpoints ----


def test_cron_secret_required(client, settings):
    settings.CRON_SECRET = "s3cret"
    assert client.get("/api/cron/system-health/").status_code == 401
    assert (
        client.get("/api/cron/system-health/", HTTP_AUTHORIZATION="Bearer wrong").status_code == 401
    )
    response = client.get("/api/cron/system-health/", HTTP_AUTHORIZATION="Bearer s3cret")
    assert response.status_code == 200
    assert response.json()["job"] == "system-health"



def test_non_ascii_cron_secret_is_unauthorized(client, settings):
    settings.CRON_SECRET = "s3cret"
    response = client.get("/api/cron/system-health/", HTTP_AUTHORIZATION="Bearer s3cr\u00e9t")
    assert response.status_code == 401
    assert not JobRun.objects.exists()


def test_unknown_job_is_404(client):
    assert client.get("/api/cron/payroll/").status_code == 404


def test_job_runs_are_recorded(client):
    body = client.post("/api/cron/cert-expiry/").json()
    assert body["success"] is True
    assert "duration_ms" in body

    run = JobRun.objects.get(job_name="cert-expiry")
    assert run.success
    assert run.finished_at is not None
    assert run.summary["records_checked"] == 0


def test_failed_job_is_recorded(client, monkeypatch):
    def explode():
        raise RuntimeError("database unavailable")

    monkeypatch.setitem(JOBS, "cert-expiry", explode)
    response = client.get("/api/cron/cert-expiry/")
    assert response.status_code == 500
    assert response.json()["error"] == "Job failed"

    run = JobRun.objects.get(job_name="cert-expiry")
    assert not run.success
    assert run.error == "database unavailable"


def test_run_job_command():
    buffer = StringIO()
    call_command("run_job", "availability-reminders", stdout=buffer)
    out = buffer.getvalue()
    summary = json.loads(out[: out.rindex("}") + 1])
    assert summary["instructors_checked"] == 0
    assert "availability-reminders completed" in out
