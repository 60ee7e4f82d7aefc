import json

import pytest

from core.exceptions import ApiError
from lab_management.models import Cohort
from reports.builder import run_report
from reports.models import ReportTemplate

pytestmark = pytest.mark.django_db

BUILDER = "/api/reports/builder/"


def test_schema_lists_sources(login, instructor):
    schema = login(instructor).get(BUILDER).json()["schema"]
    assert {s["key"] for s in schema} == {"students", "lab_days", "shifts", "grades", "clinical_hours"}


def test_guests_cannot_build_reports(login, guest):
    assert login(guest).get(BUILDER).status_code == 403


def test_run_report_with_filters(make_student):
    make_student("Ann", "Able", agency="Metro Fire")
    make_student("Bob", "Baker", agency="County EMS")
    make_student("Cal", "Carter", agency="Metro Fire", status="withdrawn")

    result = run_report(
        "students",
        columns=["first_name", "agency", "bogus"],
        filters=[
            {"column": "agency", "operator": "contains", "value": "metro"},
            {"column": "status", "operator": "not_equals", "value": "withdrawn"},
        ],
        sort_by="first_name",
    )
    assert result["columns"] == ["first_name", "agency"]
    assert result["data"] == [{"first_name": "Ann", "agency": "Metro Fire"}]
    assert result["total_count"] == 1
    assert result["source_label"] == "Students"


def test_group_by_column_is_prepended(make_student):
    make_student()
    result = run_report("students", columns=["first_name"], group_by="status")
    assert result["columns"] == ["status", "first_name"]


def test_report_limit_and_sort(make_student):
    for n in range(5):
        make_student(f"S{n}", "Student")
    result = run_report("students", columns=["first_name"], sort_by="first_name", sort_direction="desc", limit=2)
    assert [r["first_name"] for r in result["data"]] == ["S4", "S3"]
    assert result["total_count"] == 5


def test_report_errors(make_student):
    with pytest.raises(ApiError, match="Invalid or missing data_source"):
        run_report("payroll")
    with pytest.raises(ApiError, match="No valid columns selected"):
        run_report("students", columns=["nope"])
    with pytest.raises(ApiError, match="Unknown filter operator"):
        run_report("students", filters=[{"column": "status", "operator": "like", "value": "x"}])


def test_run_over_http(login, instructor, make_student):
    make_student()
    response = login(instructor).get(
        BUILDER,
        {
            "action": "run",
            "data_source": "students",
            "columns": "first_name,last_name",
            "filters": json.dumps([{"column": "last_name", "operator": "equals", "value": "Doe"}]),
        },
    )
    assert response.status_code == 200
    assert response.json()["data"] == [{"first_name": "Jane", "last_name": "Doe"}]


def test_invalid_action(login, instructor):
    assert login(instructor).get(BUILDER, {"action": "export"}).status_code == 400


# ---- Templates ----


def test_template_lifecycle(login, instructor, instructor2):
    client = login(instructor)
    response = client.post(
        BUILDER,
        data={
            "name": "Metro students",
            "data_source": "students",
            "columns": ["first_name", "agency"],
            "filters": [{"column": "agency", "operator": "contains", "value": "Metro"}],
            "is_shared": True,
        },
        content_type="application/json",
    )
    assert response.status_code == 201
    template = response.json()["template"]
    assert template["sort_direction"] == "asc"

    ReportTemplate.objects.create(
        name="Private", data_source="students", columns=["id"], created_by=instructor2
    )
    names = [t["name"] for t in login(instructor2).get(BUILDER, {"action": "templates"}).json()["templates"]]
    assert sorted(names) == ["Metro students", "Private"]

    response = login(instructor2).put(
        BUILDER, data={"id": template["id"], "name": "Hijacked"}, content_type="application/json"
    )
    assert response.status_code == 403
    assert response.json()["error"] == "You can only modify your own templates"

    client = login(instructor)
    response = client.put(BUILDER, data={"id": template["id"], "name": "Metro (renamed)"}, content_type="application/json")
    assert response.status_code == 200
    assert response.json()["template"]["name"] == "Metro (renamed)"

    assert client.delete(f"{BUILDER}?id={template['id']}").status_code == 200
    assert not ReportTemplate.objects.filter(pk=template["id"]).exists()


def test_template_rejects_unknown_columns(login, instructor):
    response = login(instructor).post(
        BUILDER,
        data={"name": "Bad", "data_source": "students", "columns": ["salary"]},
        content_type="application/json",
    )
    assert response.status_code == 400


# ---- Cohort comparison ----


def test_cohort_comparison_keeps_requested_order(login, lead, program, cohort):
    other = Cohort.objects.create(program=program, cohort_number=13)
    response = login(lead).post(
        "/api/reports/cohort-comparison/",
        data={"cohort_ids": [other.pk, cohort.pk]},
        content_type="application/json",
    )
    assert response.status_code == 200
    assert [c["cohort_id"] for c in response.json()["cohorts"]] == [other.pk, cohort.pk]


@pytest.mark.parametrize("ids", [[1], [1, 2, 3, 4, 5], "1,2"])
def test_cohort_comparison_needs_two_to_four(login, lead, ids):
    response = login(lead).post(
        "/api/reports/cohort-comparison/", data={"cohort_ids": ids}, content_type="application/json"
    )
    assert response.status_code == 400
    assert response.json()["error"] == "cohort_ids must be an array of 2-4 cohort IDs"


def test_cohort_comparison_unknown_ids(login, lead):
    response = login(lead).post(
        "/api/reports/cohort-comparison/", data={"cohort_ids": [998, 999]}, content_type="application/json"
    )
    assert response.status_code == 400
    assert response.json()["error"] == "No cohorts found"


def test_filter_value_of_wrong_type(make_student):
    make_student()
    with pytest.raises(ApiError, match="Invalid filter value for id"):
        run_report("students", filters=[{"column": "id", "operator": "gt", "value": "abc"}])
    with pytest.raises(ApiError, match="Invalid filter value for created_at"):
        run_report(
            "students",
            filters=[{"column": "created_at", "operator": "between", "value": "soon", "value2": "later"}],
        )


def test_bad_filter_value_over_http(login, instructor):
    response = login(instructor).get(
        BUILDER,
        {
            "action": "run",
            "data_source": "students",
            "filters": json.dumps([{"column": "id", "operator": "gt", "value": "abc"}]),
        },
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid filter value for id"


def test_template_id_must_be_numeric(login, instructor):
    response = login(instructor).put(BUILDER, data={"id": "abc", "name": "x"}, content_type="application/json")
    assert response.status_code == 400
