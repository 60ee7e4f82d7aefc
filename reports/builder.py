"""
Custom report builder.

DATA_SOURCES maps each reportable source to a model and its typed columns.
A column is read straight from the model field of the same name unless it
names another ORM path (``path``) or a computed value (``expr``).
"""
from django.core.exceptions import ValidationError
from django.db.models import F, IntegerField, Value

from core.api import serialize_value
from core.exceptions import ApiError
from lab_management.analytics import REQUIRED_CLINICAL_HOURS
from lab_management.models import ClinicalHours, LabDay, ScenarioAssessment, Student
from scheduling.models import Shift

DEFAULT_LIMIT = 50
MAX_LIMIT = 500

OPERATORS = ("equals", "not_equals", "contains", "gt", "lt", "between", "is_null")


def _col(key, label, type_="text", **extra):
    return {"key": key, "label": label, "type": type_, **extra}


DATA_SOURCES = {
    "students": {
        "label": "Students",
        "model": Student,
        "columns": [
            _col("id", "ID"),
            _col("first_name", "First Name"),
            _col("last_name", "Last Name"),
            _col("email", "Email"),
            _col("status", "Status"),
            _col("agency", "Agency"),
            _col("cohort_id", "Cohort ID"),
            _col("created_at", "Created At", "date"),
        ],
    },
    "lab_days": {
        "label": "Lab Days",
        "model": LabDay,
        "columns": [
            _col("id", "ID"),
            _col("date", "Lab Date", "date"),
            _col("cohort_id", "Cohort ID"),
            _col("title", "Title"),
            _col("notes", "Notes"),
            _col("is_cancelled", "Cancelled", "boolean"),
            _col("created_at", "Created At", "date"),
        ],
    },
    "shifts": {
        "label": "Shifts",
        "model": Shift,
        "columns": [
            _col("id", "ID"),
            _col("title", "Title"),
            _col("date", "Shift Date", "date"),
            _col("start_time", "Start Time"),
            _col("end_time", "End Time"),
            _col("location", "Location"),
            _col("department", "Department"),
            _col("is_cancelled", "Cancelled", "boolean"),
            _col("created_at", "Created At", "date"),
        ],
    },
    "grades": {
        "label": "Grades",
        "model": ScenarioAssessment,
        "columns": [
            _col("id", "ID"),
            _col("team_lead_id", "Team Lead (Student) ID"),
            _col("cohort_id", "Cohort ID"),
            _col("overall_score", "Overall Score", "number"),
            _col("scenario_id", "Scenario ID", path="lab_station__scenario_id"),
            _col("issue_level", "Issue Level"),
            _col("created_at", "Created At", "date"),
        ],
    },
    "clinical_hours": {
        "label": "Clinical Hours",
        "model": ClinicalHours,
        "columns": [
            _col("id", "ID"),
            _col("student_id", "Student ID"),
            _col("total_hours", "Total Hours", "number"),
            _col(
                "required_hours",
                "Required Hours",
                "number",
                expr=lambda: Value(REQUIRED_CLINICAL_HOURS, output_field=IntegerField()),
            ),
            _col("updated_at", "Updated At", "date"),
        ],
    },
}


def schema():
    """Data sources and their columns, as returned by ?action=schema."""
    return [
        {
            "key": key,
            "label": source["label"],
            "columns": [
                {"key": c["key"], "label": c["label"], "type": c["type"]} for c in source["columns"]
            ],
        }
        for key, source in DATA_SOURCES.items()
    ]


def get_source(data_source):
    source = DATA_SOURCES.get(data_source or "")
    if source is None:
        raise ApiError("Invalid or missing data_source")
    return source


def column_keys(source):
    return [c["key"] for c in source["columns"]]


def valid_columns(source, requested):
    """Requested columns that exist on the source, in order; all of them when none requested."""
    keys = column_keys(source)
    if not requested:
        return keys
    selected = [c for c in requested if c in keys]
    if not selected:
        raise ApiError("No valid columns selected")
    return selected


def _base_queryset(source):
    """Queryset with every non-field column annotated under its key."""
    annotations = {}
    for column in source["columns"]:
        if "expr" in column:
            annotations[column["key"]] = column["expr"]()
        elif "path" in column:
            annotations[column["key"]] = F(column["path"])
    return source["model"].objects.annotate(**annotations)


def _filter_kwargs(column, operator, f):
    """(lookup kwargs, exclude?) for one filter, or None when it should be skipped."""
    value = f.get("value")
    if operator == "equals":
        return {column: value}, False
    if operator == "not_equals":
        return {column: value}, True
    if operator == "contains":
        return {f"{column}__icontains": value}, False
    if operator == "gt":
        return {f"{column}__gt": value}, False
    if operator == "lt":
        return {f"{column}__lt": value}, False
    if operator == "between":
        value2 = f.get("value2")
        if value in (None, "") or value2 in (None, ""):
            return None
        return {f"{column}__gte": value, f"{column}__lte": value2}, False
    if operator == "is_null":
        return {f"{column}__isnull": True}, False
    raise ApiError(f"Unknown filter operator: {operator}")


def apply_filters(qs, source, filters):
    keys = column_keys(source)
    for f in filters or []:
        if not isinstance(f, dict):
            continue
        column, operator = f.get("column"), f.get("operator")
        if not column or not operator:
            continue
        if column not in keys:
            raise ApiError(f"Unknown filter column: {column}")
        lookup = _filter_kwargs(column, operator, f)
        if lookup is None:
            continue
        kwargs, exclude = lookup
        # Lookup values are converted to the column type here, not at query time.
        try:
            qs = qs.exclude(**kwargs) if exclude else qs.filter(**kwargs)
        except (ValueError, TypeError, ValidationError):
            raise ApiError(f"Invalid filter value for {column}")
    return qs


def run_report(
    data_source,
    columns=None,
    filters=None,
    sort_by=None,
    sort_direction="asc",
    group_by=None,
    limit=DEFAULT_LIMIT,
):
    """
    Run a report. Returns {"data", "total_count", "columns", "source_label"}.

    group_by only makes sure the grouping column is present (first) so the
    client can group the rows; it does not aggregate.
    """
    source = get_source(data_source)
    keys = column_keys(source)
    selected = valid_columns(source, columns)
    if group_by and group_by in keys and group_by not in selected:
        selected = [group_by] + selected

    qs = apply_filters(_base_queryset(source), source, filters)
    total_count = qs.count()

    if sort_by and sort_by in keys:
        qs = qs.order_by(f"-{sort_by}" if sort_direction == "desc" else sort_by)
    elif "created_at" in selected:
        qs = qs.order_by("-created_at")
    else:
        qs = qs.order_by("pk")

    limit = max(1, min(limit or DEFAULT_LIMIT, MAX_LIMIT))
    rows = [
        {key: serialize_value(value) for key, value in row.items()}
        for row in qs.values(*selected)[:limit]
    ]
    return {
        "data": rows,
        "total_count": total_count,
        "columns": selected,
        "source_label": source["label"],
    }
