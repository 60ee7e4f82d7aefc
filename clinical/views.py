"""Views for clinical internship tracking."""
from django.shortcuts import get_object_or_404

from clinical.forms import InternshipUpdateForm
from clinical.models import FieldPreceptor, StudentInternship
from core.api import api_view, get_bool, get_int, json_success, parse_json_body, validate_form
from core.decorators import require_min_role
from core.mixins import stamp_audit
from core.permissions import ROLE_INSTRUCTOR, ROLE_LEAD_INSTRUCTOR


def _internships():
    return StudentInternship.objects.select_related("student", "preceptor__agency", "agency")


@api_view("GET", error_message="Failed to load internships")
@require_min_role(ROLE_LEAD_INSTRUCTOR)
def internships(request):
    """?status (or "active" for every in-flight status), ?cohort_id"""
    qs = _internships()
    status = request.GET.get("status")
    if status == "active":
        qs = qs.filter(status__in=StudentInternship.ACTIVE_STATUSES)
    elif status:
        qs = qs.filter(status=status)
    cohort_id = get_int(request.GET, "cohort_id")
    if cohort_id:
        qs = qs.filter(cohort_id=cohort_id)
    return json_success(internships=[i.to_dict() for i in qs])


@api_view("GET", "PUT", error_message="Failed to update internship")
@require_min_role(ROLE_LEAD_INSTRUCTOR)
def internship_detail(request, pk):
    internship = get_object_or_404(_internships(), pk=pk)
    if request.method == "PUT":
        form = validate_form(InternshipUpdateForm, parse_json_body(request), instance=internship)
        internship = form.save(commit=False)
        stamp_audit(internship, request.user)
        internship.save()
    return json_success(internship=internship.to_dict())


@api_view("GET", error_message="Failed to load preceptors")
@require_min_role(ROLE_INSTRUCTOR)
def preceptors(request):
    qs = FieldPreceptor.objects.select_related("agency")
    if request.GET.get("active") is not None:
        qs = qs.filter(is_active=get_bool(request.GET, "active"))
    return json_success(preceptors=[p.to_dict() for p in qs])
