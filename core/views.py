"""
Views for the core API.

This module provides:
- Me: the signed-in user's identity, role and endorsements
- Dashboard: KPIs across the program and a recent activity feed
- Users: staff list and role assignment (admin+)
- Endorsements: grant, list and revoke special authority (admin+)
"""
import logging
from datetime import datetime, time, timedelta

from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied
from django.db import transaction
from django.db.models import Count, F, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone

from core.api import (
    api_view,
    get_int,
    json_success,
    parse_json_body,
    require_fields,
    to_date,
    user_summary,
)
from core.decorators import api_login_required, require_app_access, require_min_role
from core.exceptions import ApiError
from core.models import Endorsement, ProgramStaff
from core.permissions import (
    GROUP_ROLES,
    ROLE_ADMIN,
    ROLE_LABELS,
    ROLE_LEVELS,
    can_assign_role,
    can_modify_user,
    get_role,
    has_app_access,
    is_protected_superadmin,
    set_role,
)
from lab_management.models import Cohort, LabDay, Scenario, Student
from notifications.models import UserNotification
from notifications.services import create_notification, notify_safely
from scheduling.models import Shift, ShiftSignup, ShiftTradeRequest

logger = logging.getLogger(__name__)

User = get_user_model()

UPCOMING_WINDOW = timedelta(days=14)


def _user_row(user):
    role = get_role(user)
    staff = getattr(user, "program_staff", None)
    row = user_summary(user)
    row.update(
        {
            "role": role,
            "role_label": ROLE_LABELS.get(role, "Pending"),
            "is_active": bool(staff and staff.is_active),
            "is_protected": is_protected_superadmin(user),
            "last_login_at": (
                staff.last_login_at.isoformat() if staff and staff.last_login_at else None
            ),
            "date_joined": user.date_joined.isoformat(),
        }
    )
    return row


@api_view("GET", error_message="Failed to load user")
@api_login_required
def me(request):
    data = _user_row(request.user)
    data["has_app_access"] = has_app_access(request.user)
    data["endorsements"] = [e.to_dict() for e in request.user.endorsements.current()]
    return json_success(user=data)


@api_view("GET", error_message="Failed to load dashboard")
@require_app_access
def dashboard(request):
    """
    KPIs for the program and a unified feed of recent edits.
    """
    now = timezone.now()
    today = timezone.localdate()

    open_shifts = (
        Shift.objects.filter(date__gte=today, is_cancelled=False)
        .annotate(
            confirmed=Count(
                "signups", filter=Q(signups__status=ShiftSignup.STATUS_CONFIRMED)
            )
        )
        .filter(confirmed__lt=F("min_instructors"))
        .count()
    )

    kpis = {
        "active_cohorts": Cohort.objects.filter(is_active=True, is_archived=False).count(),
        "active_students": Student.objects.filter(status=Student.STATUS_ACTIVE).count(),
        "upcoming_lab_days": LabDay.objects.filter(
            date__gte=today, date__lte=today + UPCOMING_WINDOW, is_cancelled=False
        ).count(),
        "open_shifts": open_shifts,
        "pending_trades": ShiftTradeRequest.objects.filter(
            status__in=ShiftTradeRequest.OPEN_STATUSES
        ).count(),
        "unread_notifications": UserNotification.objects.filter(
            user_email=request.user.email.lower(), is_read=False
        ).count(),
    }

    # --- Recent activity (simple unified event log across audited models) ---
    events = []

    def add_events_from_queryset(qs, entity_label, describe):
        for obj in qs:
            when = obj.last_updated_at or obj.created_at
            if obj.created_at and obj.last_updated_at and obj.last_updated_at > obj.created_at:
                action = "Updated"
            else:
                action = "Created"

            by_user = obj.last_updated_by or obj.created_by
            by_display = None
            if by_user:
                by_display = by_user.get_full_name() or by_user.email or by_user.username

            if when:
                events.append(
                    {
                        "when": when,
                        "entity": entity_label,
                        "id": obj.pk,
                        "label": describe(obj),
                        "action": action,
                        "by": by_display,
                    }
                )

    audited = ("created_by", "last_updated_by")
    add_events_from_queryset(
        Cohort.objects.select_related("program", *audited).order_by("-last_updated_at")[:5],
        "Cohort",
        lambda c: c.label,
    )
    add_events_from_queryset(
        Student.objects.select_related(*audited).order_by("-last_updated_at")[:5],
        "Student",
        lambda s: s.full_name,
    )
    add_events_from_queryset(
        LabDay.objects.select_related(*audited).order_by("-last_updated_at")[:5],
        "Lab day",
        lambda d: d.title or d.date.isoformat(),
    )
    add_events_from_queryset(
        Shift.objects.select_related(*audited).order_by("-last_updated_at")[:5],
        "Shift",
        lambda s: s.title,
    )
    add_events_from_queryset(
        Scenario.objects.select_related(*audited).order_by("-last_updated_at")[:5],
        "Scenario",
        lambda s: s.title,
    )

    # Sort all events by time and keep the latest 10
    events = sorted(events, key=lambda e: e["when"], reverse=True)[:10]
    for event in events:
        event["when"] = event["when"].isoformat()

    return json_success(kpis=kpis, recent_activity=events, generated_at=now.isoformat())


@api_view("GET", error_message="Failed to load users")
@require_min_role(ROLE_ADMIN)
def users(request):
    """
    Staff list with roles.

    ?status=pending lists signed-up users who have not been given a role yet.
    ?role=<role> filters by role.
    """
    qs = User.objects.select_related("program_staff").prefetch_related("groups")
    status = request.GET.get("status")
    if status == "pending":
        qs = qs.filter(is_superuser=False).exclude(groups__name__in=GROUP_ROLES)

    rows = [_user_row(u) for u in qs.order_by("last_name", "first_name", "email")]
    role = request.GET.get("role")
    if role:
        rows = [r for r in rows if r["role"] == role]
    return json_success(users=rows)


@api_view("PUT", error_message="Failed to update role")
@require_min_role(ROLE_ADMIN)
def user_role(request, pk):
    """
    {"role": "<role>"} grants a role; {"role": null} revokes access.

    Granting a role to a pending user creates their ProgramStaff profile.
    """
    target = get_object_or_404(User, pk=pk)
    data = parse_json_body(request)
    if "role" not in data:
        raise ApiError("Missing required fields: role")
    role = data["role"] or None
    if role is not None and role not in ROLE_LEVELS:
        raise ApiError("Invalid role")

    if not can_modify_user(request.user, target):
        raise PermissionDenied("You cannot change this user's role")
    if role is not None and not can_assign_role(request.user, role):
        raise PermissionDenied("You cannot assign this role")

    previous = get_role(target)
    with transaction.atomic():
        if role is not None:
            staff, created = ProgramStaff.objects.get_or_create(
                user=target, defaults={"created_by": request.user}
            )
            if not created and not staff.is_active:
                staff.is_active = True
                staff.last_updated_by = request.user
                staff.save(update_fields=["is_active", "last_updated_by", "last_updated_at"])
        set_role(target, role)

    logger.info(
        "Role of %s changed from %s to %s by %s", target.email, previous, role, request.user.email
    )

    if previous is None and role is not None and target.email:
        notify_safely(
            create_notification,
            target.email,
            "Access approved",
            f"You have been given the {ROLE_LABELS[role]} role.",
            type=UserNotification.TYPE_ROLE_APPROVED,
            category=UserNotification.CATEGORY_SYSTEM,
            link_url="/",
        )

    target = User.objects.select_related("program_staff").get(pk=target.pk)
    return json_success(user=_user_row(target), previous_role=previous)


@api_view("GET", "POST", error_message="Failed to load endorsements")
@require_min_role(ROLE_ADMIN)
def endorsements(request):
    """
    GET: endorsements (?user_id, ?active=false to include revoked ones).
    POST: {"user_id", "endorsement_type", "title"?, "expires_at"?}
    """
    if request.method == "POST":
        data = parse_json_body(request)
        require_fields(data, "user_id", "endorsement_type")
        if data["endorsement_type"] not in dict(Endorsement.TYPE_CHOICES):
            raise ApiError("Invalid endorsement_type")
        user = get_object_or_404(User, pk=get_int(data, "user_id"))
        expires = to_date(data.get("expires_at"), "expires_at")

        endorsement = Endorsement.objects.create(
            user=user,
            endorsement_type=data["endorsement_type"],
            title=(data.get("title") or "").strip(),
            granted_by=request.user,
            expires_at=(
                timezone.make_aware(datetime.combine(expires, time.max))
                if expires
                else None
            ),
        )
        logger.info(
            "Endorsement %s granted to %s by %s",
            endorsement.endorsement_type,
            user.email,
            request.user.email,
        )
        return json_success(status=201, endorsement=endorsement.to_dict())

    qs = Endorsement.objects.select_related("user")
    if request.GET.get("active") != "false":
        qs = qs.current()
    user_id = get_int(request.GET, "user_id")
    if user_id:
        qs = qs.filter(user_id=user_id)
    return json_success(endorsements=[e.to_dict() for e in qs])


@api_view("DELETE", error_message="Failed to revoke endorsement")
@require_min_role(ROLE_ADMIN)
def endorsement_detail(request, pk):
    endorsement = get_object_or_404(Endorsement.objects.select_related("user"), pk=pk)
    endorsement.is_active = False
    endorsement.save(update_fields=["is_active"])
    logger.info("Endorsement %s revoked by %s", pk, request.user.email)
    return json_success(endorsement=endorsement.to_dict())
