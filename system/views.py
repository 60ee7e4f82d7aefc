"""
System administration API: runtime configuration, health alerts and the
endpoints the scheduler calls to run jobs.
"""
import logging

from django.db.models import Case, IntegerField, Value, When
from django.http import Http404
from django.shortcuts import get_object_or_404
from django.utils import timezone

from core.api import api_view, get_bool, get_int, json_success, parse_json_body, require_fields
from core.decorators import require_cron_secret, require_min_role
from core.exceptions import ApiError
from core.permissions import ROLE_ADMIN, ROLE_SUPERADMIN, ensure_min_role
from system.config import config_map
from system.jobs import JOBS, run_job
from system.models import JobRun, SystemAlert, SystemConfig

logger = logging.getLogger(__name__)


@api_view("GET", "PUT", error_message="Failed to load configuration")
@require_min_role(ROLE_ADMIN)
def admin_config(request):
    """
    GET: every config row keyed by config_key.
    PUT (superadmin): {"config_key": ..., "config_value": ...}
    """
    if request.method == "PUT":
        ensure_min_role(request.user, ROLE_SUPERADMIN)
        data = parse_json_body(request)
        require_fields(data, "config_key")
        if "config_value" not in data:
            raise ApiError("Missing required fields: config_value")

        row = SystemConfig.objects.filter(config_key=data["config_key"]).first()
        if row is None:
            raise Http404("Config key not found")
        row.config_value = data["config_value"]
        row.updated_by = request.user
        row.save()
        logger.info("Config %s updated by %s", row.config_key, request.user.email)
        return json_success(config=row.to_dict())

    return json_success(config=config_map())


def _alert_queryset(params):
    qs = SystemAlert.objects.select_related("resolved_by")
    alert_type = params.get("type")
    if alert_type:
        qs = qs.filter(alert_type=alert_type)
    severity = params.get("severity")
    if severity:
        qs = qs.filter(severity=severity)
    if params.get("resolved") not in (None, ""):
        qs = qs.filter(resolved=get_bool(params, "resolved"))

    severity_rank = Case(
        *[When(severity=s, then=Value(rank)) for s, rank in SystemAlert.SEVERITY_RANK.items()],
        default=Value(len(SystemAlert.SEVERITY_RANK)),
        output_field=IntegerField(),
    )
    return qs.annotate(severity_rank=severity_rank).order_by("resolved", "severity_rank", "-created_at")


@api_view("GET", "PATCH", error_message="Failed to load system alerts")
@require_min_role(ROLE_ADMIN)
def system_alerts(request):
    """
    GET: alerts (?type, ?severity, ?resolved), unresolved first, then by
    severity, newest first; plus summary stats.
    PATCH: {"id": ..., "resolved": true|false}
    """
    if request.method == "PATCH":
        data = parse_json_body(request)
        require_fields(data, "id")
        alert = get_object_or_404(SystemAlert, pk=get_int(data, "id"))
        if get_bool(data, "resolved", default=True):
            alert.resolve(request.user)
        else:
            alert.reopen()
        return json_success(alert=alert.to_dict())

    alerts = list(_alert_queryset(request.GET))
    start_of_day = timezone.localtime().replace(hour=0, minute=0, second=0, microsecond=0)
    last_check = (
        JobRun.objects.filter(job_name="system-health", success=True)
        .order_by("-started_at")
        .values_list("finished_at", flat=True)
        .first()
    )
    unresolved = SystemAlert.objects.filter(resolved=False)
    stats = {
        "unresolved": unresolved.count(),
        "critical": unresolved.filter(severity=SystemAlert.SEVERITY_CRITICAL).count(),
        "resolved_today": SystemAlert.objects.filter(resolved_at__gte=start_of_day).count(),
        "last_health_check": last_check.isoformat() if last_check else None,
    }
    return json_success(alerts=[a.to_dict() for a in alerts], stats=stats)


@api_view("GET", "POST", error_message="Job failed")
@require_cron_secret
def cron(request, job_name):
    if job_name not in JOBS:
        raise Http404("Unknown job")
    summary = run_job(job_name)
    return json_success(job=job_name, **summary)
