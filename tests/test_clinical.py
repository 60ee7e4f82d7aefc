from datetime import date

import pytest

from clinical.models import Agency, FieldPreceptor, StudentInternship

pytestmark = pytest.mark.django_db


@pytest.fixture
def placements(cohort, make_student):
    agency = Agency.objects.create(name="Metro Fire", abbreviation="MFD")
    preceptor = FieldPreceptor.objects.create(
        first_name="Pat", last_name="Medic", agency=agency, snhd_cert_expires=date(2027, 1, 31)
    )
    active = StudentInternship.objects.create(
        student=make_student(),
        cohort=cohort,
        preceptor=preceptor,
        agency=agency,
        status=StudentInternship.STATUS_ON_TRACK,
        internship_start_date=date(2026, 9, 1),
        expected_end_date=date(2026, 12, 15),
    )
    done = StudentInternship.objects.create(
        student=make_student("Jon", "Finished"),
        cohort=cohort,
        status=StudentInternship.STATUS_COMPLETED,
    )
    return active, done


def test_phase_due_dates(placements):
    active, done = placements
    assert active.phase_1_due == date(2026, 10, 1)
    assert active.phase_2_due == date(2026, 11, 15)
    assert done.phase_1_due is None


def test_internship_list_filters(login, lead, placements):
    active, done = placements
    client = login(lead)
    rows = client.get("/api/clinical/internships/?status=active").json()["internships"]
    assert [r["id"] for r in rows] == [active.pk]
    assert rows[0]["preceptor"]["last_name"] == "Medic"
    assert rows[0]["phase_1_due"] == "2026-10-01"

    rows = client.get("/api/clinical/internships/?status=completed").json()["internships"]
    assert [r["id"] for r in rows] == [done.pk]


def test_internships_need_lead_instructor(login, instructor, placements):
    assert login(instructor).get("/api/clinical/internships/").status_code == 403


def test_updating_internship(login, lead, placements):
    active, _ = placements
    response = login(lead).put(
        f"/api/clinical/internships/{active.pk}/",
        data={"phase_1_eval_completed": True, "notes": "Strong first month"},
        content_type="application/json",
    )
    assert response.status_code == 200
    active.refresh_from_db()
    assert active.phase_1_eval_completed
    assert active.notes == "Strong first month"
    assert active.status == StudentInternship.STATUS_ON_TRACK
    assert active.last_updated_by == lead


def test_invalid_status_rejected(login, lead, placements):
    active, _ = placements
    response = login(lead).put(
        f"/api/clinical/internships/{active.pk}/", data={"status": "vacation"}, content_type="application/json"
    )
    assert response.status_code == 400


def test_preceptor_directory(login, instructor, placements):
    FieldPreceptor.objects.create(first_name="Old", last_name="Timer", is_active=False)
    client = login(instructor)
    assert len(client.get("/api/clinical/preceptors/").json()["preceptors"]) == 2
    active = client.get("/api/clinical/preceptors/?active=true").json()["preceptors"]
    assert [p["last_name"] for p in active] == ["Medic"]
