"""
Scenario difficulty recommendations from assessment results.

An assessment passes when its overall score is at least PASS_THRESHOLD. When
no overall score was recorded, the issue level stands in: no issue (or none
recorded) counts as a pass.
"""
import logging

from django.db import transaction
from django.db.models import Max

from core.exceptions import ApiError
from lab_management.analytics import percent, round_half_up
from lab_management.models import ScenarioAssessment, ScenarioVersion

logger = logging.getLogger(__name__)

PASS_THRESHOLD = 3
MIN_ASSESSMENTS = 5

LOWER_BELOW = 60
RAISE_ABOVE = 95

DIFFICULTY_ORDER = [
    "basic",
    "easy",
    "beginner",
    "intermediate",
    "medium",
    "advanced",
    "hard",
    "expert",
]

DIRECTION_RAISE = "raise"
DIRECTION_LOWER = "lower"
DIRECTION_KEEP = "keep"


def normalize_difficulty(value):
    return (value or "").strip().lower()


def adjust_difficulty(current, direction):
    """One step up or down the ladder; None when unknown or already at the end."""
    normalized = normalize_difficulty(current)
    if normalized not in DIFFICULTY_ORDER:
        return None
    idx = DIFFICULTY_ORDER.index(normalized)
    idx += 1 if direction == DIRECTION_RAISE else -1
    if idx < 0 or idx >= len(DIFFICULTY_ORDER):
        return None
    return DIFFICULTY_ORDER[idx]


def is_pass(overall_score, issue_level):
    if overall_score is not None:
        return overall_score >= PASS_THRESHOLD
    return (issue_level or ScenarioAssessment.ISSUE_NONE) == ScenarioAssessment.ISSUE_NONE


def _no_recommendation(scenario, total, text):
    return {
        "current_difficulty": scenario.difficulty,
        "recommended_difficulty": None,
        "direction": None,
        "pass_rate": None,
        "average_score": None,
        "total_assessments": total,
        "pass_count": 0,
        "fail_count": 0,
        "recommendation_text": text,
        "confidence": "none",
    }


def _to_clause(candidate):
    return f' to "{candidate}"' if candidate else ""


def recommend_difficulty(scenario):
    """Build the recommendation for ``scenario`` from every station that used it."""
    station_ids = list(scenario.stations.values_list("pk", flat=True))
    if not station_ids:
        return _no_recommendation(
            scenario,
            0,
            "This scenario has not been used in any lab station yet. "
            "No performance data available.",
        )

    rows = list(
        ScenarioAssessment.objects.filter(lab_station_id__in=station_ids).values_list(
            "overall_score", "issue_level"
        )
    )
    total = len(rows)
    if total < MIN_ASSESSMENTS:
        return _no_recommendation(
            scenario,
            total,
            f"Not enough data to make a recommendation. At least {MIN_ASSESSMENTS} "
            f"assessments are needed ({total} recorded so far).",
        )

    scores = [score for score, _ in rows if score is not None]
    pass_count = sum(1 for score, issue in rows if is_pass(score, issue))
    pass_rate = percent(pass_count, total)
    average_score = round_half_up(sum(scores) / len(scores), 1) if scores else None

    current = normalize_difficulty(scenario.difficulty)

    if pass_rate < LOWER_BELOW:
        direction = DIRECTION_LOWER
        candidate = adjust_difficulty(current, DIRECTION_LOWER)
        recommended = candidate or current
        if pass_rate < 40:
            confidence = "high"
            text = (
                f"Pass rate is very low at {pass_rate}%. Students are struggling "
                f"significantly with this scenario. Consider lowering the difficulty"
                f"{_to_clause(candidate)} or reviewing the critical actions and grading criteria."
            )
        else:
            confidence = "medium"
            text = (
                f"Pass rate of {pass_rate}% is below the {LOWER_BELOW}% threshold. This "
                f"scenario may be slightly too challenging for the current cohort. "
                f"Consider lowering the difficulty{_to_clause(candidate)}."
            )
    elif pass_rate > RAISE_ABOVE:
        direction = DIRECTION_RAISE
        candidate = adjust_difficulty(current, DIRECTION_RAISE)
        recommended = candidate or current
        if pass_rate == 100:
            confidence = "high"
            text = (
                "All students are passing this scenario (100% pass rate). The scenario "
                f"may be too easy. Consider raising the difficulty{_to_clause(candidate)} "
                "or adding additional critical actions."
            )
        else:
            confidence = "medium"
            text = (
                f"Pass rate of {pass_rate}% is very high. The scenario may not be "
                f"challenging enough. Consider raising the difficulty{_to_clause(candidate)}."
            )
    else:
        direction = DIRECTION_KEEP
        recommended = None
        confidence = "high" if 70 <= pass_rate <= 90 else "medium"
        text = (
            f"Pass rate of {pass_rate}% falls within the acceptable range "
            f"({LOWER_BELOW}-{RAISE_ABOVE}%). The current difficulty level appears "
            "appropriate for this scenario."
        )

    return {
        "current_difficulty": scenario.difficulty,
        "recommended_difficulty": recommended,
        "direction": direction,
        "pass_rate": pass_rate,
        "average_score": average_score,
        "total_assessments": total,
        "pass_count": pass_count,
        "fail_count": total - pass_count,
        "recommendation_text": text,
        "confidence": confidence,
    }


@transaction.atomic
def apply_difficulty(scenario, new_difficulty, user):
    """
    Change a scenario's difficulty, saving its previous state as a new version.

    Returns (scenario, previous_difficulty, version).
    """
    normalized = normalize_difficulty(new_difficulty)
    if not normalized:
        raise ApiError("new_difficulty is required")
    previous = scenario.difficulty
    if normalize_difficulty(previous) == normalized:
        raise ApiError("New difficulty is the same as current difficulty")

    last = scenario.versions.aggregate(last=Max("version_number"))["last"] or 0
    version = ScenarioVersion.objects.create(
        scenario=scenario,
        version_number=last + 1,
        data=scenario.snapshot(),
        created_by=user,
        change_summary=(
            f'Difficulty auto-adjusted from "{previous}" to "{normalized}" '
            "based on performance data"
        ),
    )

    scenario.difficulty = normalized
    scenario.last_updated_by = user
    scenario.save(update_fields=["difficulty", "last_updated_by", "last_updated_at"])
    logger.info(
        "Scenario %s difficulty changed %s -> %s by %s",
        scenario.pk,
        previous,
        normalized,
        user.email,
    )
    return scenario, previous, version
