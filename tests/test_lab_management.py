from datetime import date, timedelta

import pytest
from django.db import connection
from django.test.utils import CaptureQueriesContext
from django.utils import timezone

from lab_management.analytics import cohort_completion, percent, round_half_up
from lab_management.difficulty import adjust_difficulty, recommend_difficulty
from lab_management.models import (
    ClinicalHours,
    LabDay,
    LabStation,
    Scenario,
    ScenarioAssessment,
    ScenarioVersion,
    SkillStation,
    StationCompletion,
)

pytestmark = pytest.mark.django_db


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.45, 1) == 2.5
    assert percent(1, 3) == 33
    assert percent(5, 0) == 0


# ---- Completion ----


@pytest.fixture
def stations(db):
    return [
        SkillStation.objects.create(station_code="AIR-1", station_name="BVM", category="airway"),
        SkillStation.objects.create(station_code="AIR-2", station_name="King airway", category="airway"),
        SkillStation.objects.create(station_code="MED-1", station_name="IV access", category="medical"),
        SkillStation.objects.create(station_code="MED-2", station_name="IO access", category="medical"),
    ]


@pytest.fixture
def station_for(cohort):
    def _make(scenario=None):
        lab_day = LabDay.objects.create(date=date(2026, 2, 3), cohort=cohort)
        return LabStation.objects.create(lab_day=lab_day, station_number=1, scenario=scenario)

    return _make


def test_student_completion_blend(cohort, make_student, stations, station_for):
    student = make_student()
    now = timezone.now()
    # Failed then passed: only the latest attempt counts.
    StationCompletion.objects.create(
        student=student, station=stations[0], result="fail", completed_at=now - timedelta(days=2)
    )
    StationCompletion.objects.create(
        student=student, station=stations[0], result="pass", completed_at=now - timedelta(days=1)
    )
    StationCompletion.objects.create(student=student, station=stations[1], result="pass")
    StationCompletion.objects.create(student=student, station=stations[2], result="pass")

    station = station_for()
    ScenarioAssessment.objects.create(lab_station=station, team_lead=student, overall_score=4)
    ScenarioAssessment.objects.create(lab_station=station, team_lead=student, overall_score=5)
    ClinicalHours.objects.create(student=student, total_hours=145)

    report = cohort_completion(cohort)
    row = report["students"][0]
    assert row["skills_completed"] == 3
    assert row["skills_percent"] == 75
    assert row["scenarios_percent"] == 90
    assert row["clinical_hours_percent"] == 50
    # 75 * 0.4 + 90 * 0.3 + 50 * 0.3 = 72
    assert row["overall_percent"] == 72
    assert row["at_risk"] is False
    assert report["required_clinical_hours"] == 290


def test_clinical_hours_are_capped(cohort, make_student, stations):
    student = make_student()
    ClinicalHours.objects.create(student=student, total_hours=400)
    row = cohort_completion(cohort)["students"][0]
    assert row["clinical_hours_percent"] == 100


def test_at_risk_students_sort_first(cohort, make_student, stations):
    strong = make_student("Strong", "Student")
    weak = make_student("Weak", "Student")
    for station in stations:
        StationCompletion.objects.create(student=strong, station=station, result="pass")
    ClinicalHours.objects.create(student=strong, total_hours=290)

    report = cohort_completion(cohort)
    assert [r["id"] for r in report["students"]] == [weak.pk, strong.pk]
    # strong: 100 * 0.4 + 0 * 0.3 + 100 * 0.3 = 70, which is not below the threshold
    assert report["cohort_stats"]["at_risk_count"] == 1
    airway = next(c for c in report["cohort_stats"]["category_breakdown"] if c["category"] == "airway")
    assert airway == {"category": "airway", "total": 4, "completed": 2, "percent": 50}


def test_inactive_students_are_left_out(cohort, make_student, stations):
    make_student()
    make_student("Gone", "Away", status="withdrawn")
    assert cohort_completion(cohort)["cohort_stats"]["total_students"] == 1


def test_completion_endpoint_requires_lead(login, instructor, lead, cohort):
    url = f"/api/lab-management/cohorts/{cohort.pk}/completion/"
    assert login(instructor).get(url).status_code == 403
    response = login(lead).get(url)
    assert response.status_code == 200
    assert response.json()["cohort"]["label"] == "PM Group 12"


def test_completion_unknown_cohort(login, lead):
    assert login(lead).get("/api/lab-management/cohorts/999/completion/").status_code == 404


# ---- Archive ----


def test_archive_snapshots_the_cohort(login, admin_user, cohort, make_student):
    make_student(status="graduated")
    make_student("Will", "Withdraw", status="withdrawn")
    LabDay.objects.create(date=date(2026, 3, 1), cohort=cohort)
    LabDay.objects.create(date=date(2026, 3, 2), cohort=cohort, is_cancelled=True)

    client = login(admin_user)
    response = client.post(f"/api/lab-management/cohorts/{cohort.pk}/archive/")
    assert response.status_code == 200
    summary = response.json()["cohort"]["archive_summary"]
    assert summary["cohort_name"] == "PM Group 12"
    assert summary["total_students"] == 2
    assert summary["graduated_students"] == 1
    assert summary["total_lab_days"] == 1

    cohort.refresh_from_db()
    assert cohort.is_archived and not cohort.is_active
    assert cohort.archived_by == admin_user

    again = client.post(f"/api/lab-management/cohorts/{cohort.pk}/archive/")
    assert again.status_code == 400
    assert again.json()["error"] == "Cohort is already archived"


def test_archived_cohorts_hidden_by_default(login, instructor, cohort):
    cohort.is_archived = True
    cohort.save()
    client = login(instructor)
    assert client.get("/api/lab-management/cohorts/").json()["cohorts"] == []
    listed = client.get("/api/lab-management/cohorts/?include_archived=true").json()["cohorts"]
    assert [c["id"] for c in listed] == [cohort.pk]


def test_archive_requires_admin(login, lead, cohort):
    response = login(lead).post(f"/api/lab-management/cohorts/{cohort.pk}/archive/")
    assert response.status_code == 403


# ---- Students ----


def test_student_fields_follow_role(login, guest, lead, make_student):
    student = make_student(agency="Metro Fire", notes="private")

    guest_view = login(guest).get(f"/api/lab-management/students/{student.pk}/").json()["student"]
    assert "email" not in guest_view
    assert "notes" not in guest_view
    assert guest_view["first_name"] == "Jane"

    lead_view = login(lead).get(f"/api/lab-management/students/{student.pk}/").json()["student"]
    assert lead_view["email"] == student.email
    assert lead_view["notes"] == "private"



def test_student_list_query_count_is_flat(login, guest, make_student):
    client = login(guest)
    make_student()
    with CaptureQueriesContext(connection) as one:
        client.get("/api/lab-management/students/")

    for n in range(19):
        make_student(f"Student{n}", "Extra", agency="Metro Fire")
    with CaptureQueriesContext(connection) as many:
        rows = client.get("/api/lab-management/students/").json()["students"]

    assert len(rows) == 20
    assert all("agency" not in row for row in rows)
    assert len(many) == len(one)


def test_create_student_validates(login, lead, instructor, cohort):
    client = login(instructor)
    payload = {"first_name": "New", "last_name": "Student", "cohort": cohort.pk}
    assert client.post("/api/lab-management/students/", data=payload, content_type="application/json").status_code == 403

    client = login(lead)
    response = client.post("/api/lab-management/students/", data=payload, content_type="application/json")
    assert response.status_code == 201
    assert response.json()["student"]["status"] == "active"

    response = client.post(
        "/api/lab-management/students/", data={"first_name": "No"}, content_type="application/json"
    )
    assert response.status_code == 400
    assert "last_name" in response.json()["error"]


def test_lab_day_with_stations(login, instructor, cohort):
    response = login(instructor).post(
        "/api/lab-management/lab-days/",
        data={
            "date": "2026-04-07",
            "cohort": cohort.pk,
            "title": "Trauma day",
            "stations": [
                {"station_number": 1, "station_type": "scenario"},
                {"station_number": 2, "station_type": "skills", "skill_name": "Splinting"},
            ],
        },
        content_type="application/json",
    )
    assert response.status_code == 201
    lab_day = response.json()["lab_day"]
    assert lab_day["num_rotations"] == 4
    assert [s["station_number"] for s in lab_day["stations"]] == [1, 2]


# ---- Difficulty ----


def test_adjust_difficulty_ladder():
    assert adjust_difficulty("Intermediate", "raise") == "medium"
    assert adjust_difficulty("basic", "lower") is None
    assert adjust_difficulty("expert", "raise") is None
    assert adjust_difficulty("unusual", "raise") is None


def _assess(station, scores):
    for score in scores:
        ScenarioAssessment.objects.create(lab_station=station, overall_score=score)


def test_no_recommendation_without_data(station_for):
    scenario = Scenario.objects.create(title="Chest pain", difficulty="intermediate")
    result = recommend_difficulty(scenario)
    assert result["confidence"] == "none"
    assert result["total_assessments"] == 0

    _assess(station_for(scenario), [4, 4])
    result = recommend_difficulty(scenario)
    assert result["recommended_difficulty"] is None
    assert result["total_assessments"] == 2


def test_low_pass_rate_recommends_lowering(station_for):
    scenario = Scenario.objects.create(title="Pediatric arrest", difficulty="advanced")
    _assess(station_for(scenario), [1, 2, 2, 4, 1])
    result = recommend_difficulty(scenario)
    assert result["pass_rate"] == 20
    assert result["direction"] == "lower"
    assert result["recommended_difficulty"] == "medium"
    assert result["confidence"] == "high"


def test_perfect_pass_rate_recommends_raising(station_for):
    scenario = Scenario.objects.create(title="Simple fall", difficulty="basic")
    _assess(station_for(scenario), [5, 5, 4, 5, 3])
    result = recommend_difficulty(scenario)
    assert result["pass_rate"] == 100
    assert result["direction"] == "raise"
    assert result["recommended_difficulty"] == "easy"
    assert result["average_score"] == 4.4


def test_issue_level_stands_in_for_missing_score(station_for):
    scenario = Scenario.objects.create(title="Stroke", difficulty="medium")
    station = station_for(scenario)
    for issue in ("none", "none", "none", "", "minor"):
        ScenarioAssessment.objects.create(lab_station=station, issue_level=issue)
    result = recommend_difficulty(scenario)
    assert result["pass_count"] == 4
    assert result["pass_rate"] == 80
    assert result["direction"] == "keep"
    assert result["confidence"] == "high"


def test_applying_difficulty_versions_the_scenario(login, lead, instructor):
    scenario = Scenario.objects.create(title="Overdose", difficulty="Medium")
    url = f"/api/lab-management/scenarios/{scenario.pk}/difficulty-recommendation/"

    assert (
        login(instructor).post(url, data={"new_difficulty": "hard"}, content_type="application/json").status_code
        == 403
    )

    client = login(lead)
    response = client.post(url, data={"new_difficulty": "Hard"}, content_type="application/json")
    assert response.status_code == 200
    body = response.json()
    assert body["previous_difficulty"] == "Medium"
    assert body["new_difficulty"] == "hard"
    assert body["version_number"] == 1

    version = ScenarioVersion.objects.get(scenario=scenario)
    assert version.data["difficulty"] == "Medium"

    same = client.post(url, data={"new_difficulty": "hard"}, content_type="application/json")
    assert same.status_code == 400
