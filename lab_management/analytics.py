"""
Cohort completion analytics.

Per-student progress is a weighted blend of three components:

    skills     40%  passed skill stations / active stations in the pool
    scenarios  30%  average team-lead overall score / 5
    clinical   30%  clinical hours / REQUIRED_CLINICAL_HOURS (capped at 100)

Each component is rounded to a whole percent before weighting; a student
whose overall percent is below AT_RISK_THRESHOLD is flagged at risk.
"""
import math
from collections import defaultdict

from django.db.models import Count
from django.utils import timezone

from lab_management.models import (
    ClinicalHours,
    LabDay,
    ScenarioAssessment,
    SkillStation,
    StationCompletion,
    Student,
)

REQUIRED_CLINICAL_HOURS = 290
AT_RISK_THRESHOLD = 70
MAX_SCENARIO_SCORE = 5

SKILLS_WEIGHT = 0.4
SCENARIOS_WEIGHT = 0.3
CLINICAL_WEIGHT = 0.3


def round_half_up(value, digits=0):
    """Round halves upward (2.5 -> 3), unlike Python's banker's rounding."""
    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5) / factor
    return int(rounded) if digits == 0 else rounded


def percent(part, whole):
    if not whole:
        return 0
    return round_half_up(part / whole * 100)


def _latest_results(student_ids):
    """student_id -> station_id -> result of the most recent attempt."""
    latest = defaultdict(dict)
    seen = defaultdict(dict)
    for row in StationCompletion.objects.filter(student_id__in=student_ids).values(
        "student_id", "station_id", "result", "completed_at"
    ):
        previous = seen[row["student_id"]].get(row["station_id"])
        if previous is None or row["completed_at"] > previous:
            seen[row["student_id"]][row["station_id"]] = row["completed_at"]
            latest[row["student_id"]][row["station_id"]] = row["result"]
    return latest


def _scenario_scores(student_ids):
    scores = defaultdict(list)
    for row in ScenarioAssessment.objects.filter(
        team_lead_id__in=student_ids, overall_score__isnull=False
    ).values("team_lead_id", "overall_score"):
        scores[row["team_lead_id"]].append(row["overall_score"])
    return scores


def _clinical_hours(student_ids):
    return {
        row["student_id"]: float(row["total_hours"] or 0)
        for row in ClinicalHours.objects.filter(student_id__in=student_ids).values(
            "student_id", "total_hours"
        )
    }


def student_progress(student, stations, results, scores, hours):
    """Completion row for one student. ``results`` is station_id -> latest result."""
    passed = sum(1 for s in stations if results.get(s.pk) == StationCompletion.RESULT_PASS)
    skills_percent = percent(passed, len(stations))

    scenarios_completed = len(scores)
    if scenarios_completed:
        average = sum(scores) / scenarios_completed
        scenarios_percent = round_half_up(average / MAX_SCENARIO_SCORE * 100)
    else:
        scenarios_percent = 0

    clinical_percent = min(100, percent(hours, REQUIRED_CLINICAL_HOURS))

    overall = round_half_up(
        skills_percent * SKILLS_WEIGHT
        + scenarios_percent * SCENARIOS_WEIGHT
        + clinical_percent * CLINICAL_WEIGHT
    )

    return {
        "id": student.pk,
        "first_name": student.first_name,
        "last_name": student.last_name,
        "email": student.email,
        "agency": student.agency,
        "skills_completed": passed,
        "skills_total": len(stations),
        "skills_percent": skills_percent,
        "scenarios_completed": scenarios_completed,
        "scenarios_percent": scenarios_percent,
        "clinical_hours": hours,
        "clinical_hours_required": REQUIRED_CLINICAL_HOURS,
        "clinical_hours_percent": clinical_percent,
        "overall_percent": overall,
        "at_risk": overall < AT_RISK_THRESHOLD,
    }


def _average(rows, key):
    if not rows:
        return 0
    return round_half_up(sum(r[key] for r in rows) / len(rows))


def cohort_completion(cohort):
    """
    Completion report for the active students of ``cohort``.

    Returns {"cohort", "students", "cohort_stats", "required_clinical_hours"};
    students are sorted with the least complete (at-risk) first.
    """
    students = list(
        Student.objects.filter(cohort=cohort, status=Student.STATUS_ACTIVE).order_by("last_name")
    )
    student_ids = [s.pk for s in students]
    stations = list(SkillStation.objects.filter(is_active=True))

    results = _latest_results(student_ids)
    scores = _scenario_scores(student_ids)
    hours = _clinical_hours(student_ids)

    rows = [
        student_progress(
            student,
            stations,
            results.get(student.pk, {}),
            scores.get(student.pk, []),
            hours.get(student.pk, 0),
        )
        for student in students
    ]
    rows.sort(key=lambda r: r["overall_percent"])

    categories = defaultdict(lambda: {"total": 0, "completed": 0})
    for station in stations:
        bucket = categories[station.category or "other"]
        bucket["total"] += len(students)
        for student in students:
            if results.get(student.pk, {}).get(station.pk) == StationCompletion.RESULT_PASS:
                bucket["completed"] += 1

    category_breakdown = [
        {
            "category": category,
            "total": counts["total"],
            "completed": counts["completed"],
            "percent": percent(counts["completed"], counts["total"]),
        }
        for category, counts in sorted(categories.items())
    ]

    return {
        "cohort": cohort.to_dict(),
        "students": rows,
        "cohort_stats": {
            "total_students": len(rows),
            "skills_percent": _average(rows, "skills_percent"),
            "scenarios_percent": _average(rows, "scenarios_percent"),
            "clinical_hours_percent": _average(rows, "clinical_hours_percent"),
            "overall_percent": _average(rows, "overall_percent"),
            "at_risk_count": sum(1 for r in rows if r["at_risk"]),
            "category_breakdown": category_breakdown,
            "total_stations": len(stations),
        },
        "required_clinical_hours": REQUIRED_CLINICAL_HOURS,
    }


def cohort_comparison_row(cohort):
    report = cohort_completion(cohort)
    stats = report["cohort_stats"]
    return {
        "cohort_id": cohort.pk,
        "label": cohort.label,
        "cohort_number": cohort.cohort_number,
        "start_date": cohort.start_date.isoformat() if cohort.start_date else None,
        "expected_end_date": (
            cohort.expected_end_date.isoformat() if cohort.expected_end_date else None
        ),
        "is_active": cohort.is_active,
        "student_count": stats["total_students"],
        "skills_percent": stats["skills_percent"],
        "scenarios_percent": stats["scenarios_percent"],
        "clinical_hours_percent": stats["clinical_hours_percent"],
        "overall_percent": stats["overall_percent"],
        "at_risk_count": stats["at_risk_count"],
    }


def build_archive_summary(cohort):
    """Snapshot of a cohort's record, stored on the cohort when it is archived."""
    students = list(Student.objects.filter(cohort=cohort).order_by("last_name", "first_name"))
    student_ids = [s.pk for s in students]

    skills_by_student = dict(
        StationCompletion.objects.filter(
            student_id__in=student_ids, result=StationCompletion.RESULT_PASS
        )
        .values_list("student_id")
        .annotate(n=Count("id"))
        .order_by()
    )
    scenarios_by_student = dict(
        ScenarioAssessment.objects.filter(team_lead_id__in=student_ids)
        .values_list("team_lead_id")
        .annotate(n=Count("id"))
        .order_by()
    )

    completion = cohort_completion(cohort)

    return {
        "cohort_name": cohort.label,
        "program": {
            "id": cohort.program_id,
            "name": cohort.program.name,
            "abbreviation": cohort.program.abbreviation,
        },
        "start_date": cohort.start_date.isoformat() if cohort.start_date else None,
        "expected_end_date": (
            cohort.expected_end_date.isoformat() if cohort.expected_end_date else None
        ),
        "completion_date": timezone.localdate().isoformat(),
        "total_students": len(students),
        "graduated_students": sum(1 for s in students if s.status == Student.STATUS_GRADUATED),
        "total_lab_days": LabDay.objects.filter(cohort=cohort).exclude(is_cancelled=True).count(),
        "total_scenarios_assessed": sum(scenarios_by_student.values()),
        "total_skills_completed": sum(skills_by_student.values()),
        "completion_stats": {
            key: completion["cohort_stats"][key]
            for key in (
                "skills_percent",
                "scenarios_percent",
                "clinical_hours_percent",
                "overall_percent",
                "at_risk_count",
            )
        },
        "students": [
            {
                "id": s.pk,
                "first_name": s.first_name,
                "last_name": s.last_name,
                "email": s.email,
                "agency": s.agency,
                "status": s.status,
                "skills_completed": skills_by_student.get(s.pk, 0),
                "scenarios_completed": scenarios_by_student.get(s.pk, 0),
            }
            for s in students
        ],
    }
