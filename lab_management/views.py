"""
Views for the lab management API.

Handles:
- Cohorts: list, create, completion analytics, archive
- Students: list and detail, with role-based field sanitisation
- Lab days and their stations
- Scenarios: list, create, difficulty recommendation, version history
- Scenario assessments
"""
import logging

from django.db import transaction
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone

from core.api import (
    api_view,
    get_bool,
    get_int,
    json_success,
    parse_json_body,
    to_date,
    validate_form,
)
from core.decorators import require_app_access, require_min_role
from core.exceptions import ApiError
from core.mixins import stamp_audit
from core.permissions import (
    ROLE_ADMIN,
    ROLE_INSTRUCTOR,
    ROLE_LEAD_INSTRUCTOR,
    ensure_min_role,
    get_role,
    sanitize_student,
)
from lab_management.analytics import build_archive_summary, cohort_completion
from lab_management.difficulty import apply_difficulty, recommend_difficulty
from lab_management.forms import (
    CohortForm,
    LabDayForm,
    LabStationForm,
    ScenarioAssessmentForm,
    ScenarioForm,
    StudentForm,
)
from lab_management.models import Cohort, LabDay, Scenario, Student

logger = logging.getLogger(__name__)


# ---- Cohorts ----


@api_view("GET", "POST", error_message="Failed to load cohorts")
@require_app_access
def cohorts(request):
    """
    GET: cohorts with student counts. ?active=true limits to active cohorts,
    ?include_archived=true includes archived ones.
    POST (lead instructor+): create a cohort.
    """
    if request.method == "POST":
        ensure_min_role(request.user, ROLE_LEAD_INSTRUCTOR)
        form = validate_form(CohortForm, parse_json_body(request))
        cohort = form.save(commit=False)
        stamp_audit(cohort, request.user, created=True)
        cohort.save()
        logger.info("Cohort %s created by %s", cohort.label, request.user.email)
        return json_success(status=201, cohort=cohort.to_dict())

    qs = Cohort.objects.select_related("program").annotate(
        student_count=Count("students", filter=Q(students__status=Student.STATUS_ACTIVE))
    )
    if get_bool(request.GET, "active"):
        qs = qs.filter(is_active=True)
    if not get_bool(request.GET, "include_archived"):
        qs = qs.filter(is_archived=False)

    rows = []
    for cohort in qs:
        row = cohort.to_dict()
        row["student_count"] = cohort.student_count
        rows.append(row)
    return json_success(cohorts=rows)


@api_view("GET", error_message="Failed to load cohort")
@require_app_access
def cohort_detail(request, pk):
    cohort = get_object_or_404(Cohort.objects.select_related("program"), pk=pk)
    data = cohort.to_dict()
    data["student_count"] = cohort.students.filter(status=Student.STATUS_ACTIVE).count()
    data["lab_day_count"] = cohort.lab_days.count()
    if cohort.is_archived:
        data["archive_summary"] = cohort.archive_summary
    return json_success(cohort=data)


@api_view("GET", error_message="Failed to fetch completion data")
@require_min_role(ROLE_LEAD_INSTRUCTOR)
def cohort_completion_view(request, pk):
    cohort = get_object_or_404(Cohort.objects.select_related("program"), pk=pk)
    return json_success(**cohort_completion(cohort))


@api_view("POST", error_message="Failed to archive cohort")
@require_min_role(ROLE_ADMIN)
def cohort_archive(request, pk):
    with transaction.atomic():
        cohort = get_object_or_404(
            Cohort.objects.select_for_update().select_related("program"), pk=pk
        )
        if cohort.is_archived:
            raise ApiError("Cohort is already archived")

        cohort.archive_summary = build_archive_summary(cohort)
        cohort.is_archived = True
        cohort.is_active = False
        cohort.archived_at = timezone.now()
        cohort.archived_by = request.user
        stamp_audit(cohort, request.user)
        cohort.save()

    logger.info("Cohort %s archived by %s", cohort.label, request.user.email)
    data = cohort.to_dict()
    data["archive_summary"] = cohort.archive_summary
    return json_success(cohort=data)


# ---- Students ----


@api_view("GET", "POST", error_message="Failed to load students")
@require_app_access
def students(request):
    """
    GET: students, filtered by ?cohort_id, ?status and ?q (name/email search).
    Fields are stripped according to the caller's role.
    POST (lead instructor+): create a student.
    """
    if request.method == "POST":
        ensure_min_role(request.user, ROLE_LEAD_INSTRUCTOR)
        form = validate_form(StudentForm, parse_json_body(request))
        student = form.save(commit=False)
        stamp_audit(student, request.user, created=True)
        student.save()
        return json_success(status=201, student=student.to_dict())

    qs = Student.objects.select_related("cohort__program")
    cohort_id = get_int(request.GET, "cohort_id")
    if cohort_id:
        qs = qs.filter(cohort_id=cohort_id)
    status = request.GET.get("status")
    if status:
        qs = qs.filter(status=status)
    q = (request.GET.get("q") or "").strip()
    if q:
        qs = qs.filter(
            Q(first_name__icontains=q) | Q(last_name__icontains=q) | Q(email__icontains=q)
        )

    role = get_role(request.user)
    return json_success(
        students=[sanitize_student(s.to_dict(), request.user, role=role) for s in qs]
    )


@api_view("GET", "PUT", error_message="Failed to load student")
@require_app_access
def student_detail(request, pk):
    student = get_object_or_404(Student.objects.select_related("cohort__program"), pk=pk)

    if request.method == "PUT":
        ensure_min_role(request.user, ROLE_LEAD_INSTRUCTOR)
        form = validate_form(StudentForm, parse_json_body(request), instance=student)
        student = form.save(commit=False)
        stamp_audit(student, request.user)
        student.save()

    return json_success(student=sanitize_student(student.to_dict(), request.user))


# ---- Lab days ----


def _save_stations(lab_day, stations):
    for entry in stations:
        form = validate_form(LabStationForm, entry)
        station = form.save(commit=False)
        station.lab_day = lab_day
        station.save()


@api_view("GET", "POST", error_message="Failed to load lab days")
@require_app_access
def lab_days(request):
    """
    GET: lab days filtered by ?cohort_id, ?start_date, ?end_date.
    POST (instructor+): create a lab day, optionally with a "stations" list.
    """
    if request.method == "POST":
        ensure_min_role(request.user, ROLE_INSTRUCTOR)
        data = parse_json_body(request)
        stations = data.pop("stations", None) or []
        with transaction.atomic():
            form = validate_form(LabDayForm, data)
            lab_day = form.save(commit=False)
            stamp_audit(lab_day, request.user, created=True)
            lab_day.save()
            _save_stations(lab_day, stations)
        return json_success(status=201, lab_day=lab_day.to_dict(include_stations=True))

    qs = LabDay.objects.select_related("cohort__program").prefetch_related("stations")
    cohort_id = get_int(request.GET, "cohort_id")
    if cohort_id:
        qs = qs.filter(cohort_id=cohort_id)
    start_date = to_date(request.GET.get("start_date"), "start_date")
    if start_date:
        qs = qs.filter(date__gte=start_date)
    end_date = to_date(request.GET.get("end_date"), "end_date")
    if end_date:
        qs = qs.filter(date__lte=end_date)

    return json_success(lab_days=[d.to_dict(include_stations=True) for d in qs])


@api_view("GET", "PUT", "DELETE", error_message="Failed to update lab day")
@require_app_access
def lab_day_detail(request, pk):
    lab_day = get_object_or_404(LabDay.objects.select_related("cohort__program"), pk=pk)

    if request.method == "DELETE":
        ensure_min_role(request.user, ROLE_LEAD_INSTRUCTOR)
        lab_day.delete()
        logger.info("Lab day %s deleted by %s", pk, request.user.email)
        return json_success()

    if request.method == "PUT":
        ensure_min_role(request.user, ROLE_INSTRUCTOR)
        data = parse_json_body(request)
        stations = data.pop("stations", None)
        with transaction.atomic():
            form = validate_form(LabDayForm, data, instance=lab_day)
            lab_day = form.save(commit=False)
            stamp_audit(lab_day, request.user)
            lab_day.save()
            if stations is not None:
                lab_day.stations.all().delete()
                _save_stations(lab_day, stations)

    return json_success(lab_day=lab_day.to_dict(include_stations=True))


# ---- Scenarios ----


@api_view("GET", "POST", error_message="Failed to load scenarios")
@require_app_access
def scenarios(request):
    if request.method == "POST":
        ensure_min_role(request.user, ROLE_INSTRUCTOR)
        form = validate_form(ScenarioForm, parse_json_body(request))
        scenario = form.save(commit=False)
        stamp_audit(scenario, request.user, created=True)
        scenario.save()
        return json_success(status=201, scenario=scenario.to_dict())

    qs = Scenario.objects.all()
    if not get_bool(request.GET, "include_inactive"):
        qs = qs.filter(is_active=True)
    category = request.GET.get("category")
    if category:
        qs = qs.filter(category=category)
    difficulty = request.GET.get("difficulty")
    if difficulty:
        qs = qs.filter(difficulty=difficulty.lower())
    return json_success(scenarios=[s.to_dict() for s in qs])


@api_view("GET", "POST", error_message="Failed to generate recommendation")
@require_min_role(ROLE_INSTRUCTOR)
def scenario_difficulty(request, pk):
    """
    GET: recommend a difficulty from assessment pass rates.
    POST (lead instructor+): {"new_difficulty": "..."} applies a change.
    """
    scenario = get_object_or_404(Scenario, pk=pk)

    if request.method == "POST":
        ensure_min_role(request.user, ROLE_LEAD_INSTRUCTOR)
        data = parse_json_body(request)
        new_difficulty = data.get("new_difficulty")
        if not isinstance(new_difficulty, str) or not new_difficulty.strip():
            raise ApiError("new_difficulty is required")
        scenario, previous, version = apply_difficulty(scenario, new_difficulty, request.user)
        return json_success(
            scenario=scenario.to_dict(),
            previous_difficulty=previous,
            new_difficulty=scenario.difficulty,
            version_number=version.version_number,
        )

    return json_success(**recommend_difficulty(scenario))


@api_view("GET", error_message="Failed to load versions")
@require_app_access
def scenario_versions(request, pk):
    scenario = get_object_or_404(Scenario, pk=pk)
    return json_success(
        versions=[v.to_dict() for v in scenario.versions.select_related("created_by")]
    )


@api_view("POST", error_message="Failed to save assessment")
@require_min_role(ROLE_INSTRUCTOR)
def assessments(request):
    form = validate_form(ScenarioAssessmentForm, parse_json_body(request))
    assessment = form.save(commit=False)
    station = assessment.lab_station
    assessment.lab_day = station.lab_day
    assessment.cohort = station.lab_day.cohort
    assessment.graded_by = request.user
    assessment.save()
    return json_success(status=201, assessment=assessment.to_dict())
