"""
Reporting API.

- /api/reports/builder: custom reports over a fixed set of data sources,
  plus saved report templates
- /api/reports/cohort-comparison: completion metrics for 2-4 cohorts side by side
"""
import json
import logging

from django.core.exceptions import PermissionDenied
from django.db.models import Q
from django.shortcuts import get_object_or_404

from core.api import api_view, get_int, json_success, parse_json_body, validate_form
from core.decorators import require_min_role
from core.exceptions import ApiError
from core.permissions import ROLE_INSTRUCTOR, ROLE_LEAD_INSTRUCTOR
from lab_management.analytics import cohort_comparison_row
from lab_management.models import Cohort
from reports import builder
from reports.forms import ReportTemplateForm
from reports.models import ReportTemplate

logger = logging.getLogger(__name__)


def _requested_columns(params):
    columns = params.getlist("columns[]") or params.getlist("columns")
    if len(columns) == 1 and "," in columns[0]:
        columns = columns[0].split(",")
    return [c.strip() for c in columns if c.strip()]


def _requested_filters(params):
    raw = params.get("filters")
    if not raw:
        return []
    try:
        filters = json.loads(raw)
    except ValueError:
        return []
    return filters if isinstance(filters, list) else []


def _owned_template(request, pk):
    if not pk:
        raise ApiError("Template id is required")
    template = get_object_or_404(ReportTemplate.objects.select_related("created_by"), pk=pk)
    if template.created_by_id != request.user.pk:
        raise PermissionDenied("You can only modify your own templates")
    return template


@api_view("GET", "POST", "PUT", "DELETE", error_message="Failed to run report")
@require_min_role(ROLE_INSTRUCTOR)
def report_builder(request):
    """
    GET ?action=schema      data sources and their columns (default)
    GET ?action=run         run a report: data_source, columns[], filters (JSON),
                            sort_by, sort_direction, group_by, limit
    GET ?action=templates   the caller's templates plus shared ones
    POST                    save a template
    PUT                     update a template (owner only)
    DELETE ?id=             delete a template (owner only)
    """
    if request.method == "POST":
        form = validate_form(ReportTemplateForm, parse_json_body(request))
        template = form.save(commit=False)
        template.created_by = request.user
        template.save()
        return json_success(status=201, template=template.to_dict())

    if request.method == "PUT":
        data = parse_json_body(request)
        template = _owned_template(request, get_int(data, "id"))
        data.pop("id", None)
        form = validate_form(ReportTemplateForm, data, instance=template)
        template = form.save()
        return json_success(template=template.to_dict())

    if request.method == "DELETE":
        pk = get_int(request.GET, "id") or get_int(parse_json_body(request), "id")
        template = _owned_template(request, pk)
        template.delete()
        return json_success()

    action = request.GET.get("action") or "schema"

    if action == "schema":
        return json_success(schema=builder.schema())

    if action == "run":
        result = builder.run_report(
            request.GET.get("data_source"),
            columns=_requested_columns(request.GET),
            filters=_requested_filters(request.GET),
            sort_by=request.GET.get("sort_by"),
            sort_direction=request.GET.get("sort_direction") or "asc",
            group_by=request.GET.get("group_by"),
            limit=get_int(
                request.GET,
                "limit",
                default=builder.DEFAULT_LIMIT,
                minimum=1,
                maximum=builder.MAX_LIMIT,
            ),
        )
        return json_success(**result)

    if action == "templates":
        templates = ReportTemplate.objects.select_related("created_by").filter(
            Q(created_by=request.user) | Q(is_shared=True)
        )
        return json_success(templates=[t.to_dict() for t in templates])

    raise ApiError("Invalid action")


@api_view("POST", error_message="Failed to compare cohorts")
@require_min_role(ROLE_LEAD_INSTRUCTOR)
def cohort_comparison(request):
    """{"cohort_ids": [...]} with 2-4 ids; results follow the order given."""
    cohort_ids = parse_json_body(request).get("cohort_ids")
    if not isinstance(cohort_ids, list) or not 2 <= len(cohort_ids) <= 4:
        raise ApiError("cohort_ids must be an array of 2-4 cohort IDs")

    try:
        ids = [int(pk) for pk in cohort_ids]
    except (TypeError, ValueError):
        raise ApiError("cohort_ids must be an array of 2-4 cohort IDs")

    cohorts = Cohort.objects.select_related("program").in_bulk(ids)
    if not cohorts:
        raise ApiError("No cohorts found")

    return json_success(
        cohorts=[cohort_comparison_row(cohorts[pk]) for pk in ids if pk in cohorts]
    )
