"""
Notification bell, notification preferences and announcements.

- Any user: list / mark read / delete their own notifications
- Any user: read active announcements and dismiss them
- Admins: create, edit and delete announcements
"""
import logging

from django.db.models import Count
from django.shortcuts import get_object_or_404
from django.utils import timezone

from core.api import (
    api_view,
    get_bool,
    get_int,
    json_success,
    parse_json_body,
    validate_form,
)
from core.decorators import require_app_access, require_min_role
from core.exceptions import ApiError
from core.permissions import ROLE_ADMIN, ensure_min_role, is_admin
from notifications.forms import AnnouncementForm
from notifications.models import (
    Announcement,
    AnnouncementRead,
    NotificationPreference,
    UserNotification,
)
from notifications.services import mark_read

logger = logging.getLogger(__name__)


def _email(request):
    return (request.user.email or "").lower()


@api_view("GET", "DELETE", error_message="Failed to load notifications")
@require_app_access
def notifications(request):
    """
    GET: the user's notifications, newest first.
        ?limit=50 (max 200) ?unread_only=true
    DELETE: {"id": 5} or {"all": true}
    """
    email = _email(request)
    qs = UserNotification.objects.filter(user_email=email)

    if request.method == "DELETE":
        data = parse_json_body(request)
        if data.get("all"):
            deleted, _ = qs.delete()
        elif data.get("id"):
            deleted, _ = qs.filter(pk=get_int(data, "id")).delete()
        else:
            raise ApiError("Provide id or all")
        return json_success(deleted=deleted)

    limit = get_int(request.GET, "limit", default=50, minimum=1, maximum=200)
    unread_count = qs.filter(is_read=False).count()
    if get_bool(request.GET, "unread_only"):
        qs = qs.filter(is_read=False)

    return json_success(
        notifications=[n.to_dict() for n in qs[:limit]],
        unread_count=unread_count,
    )


@api_view("PUT", error_message="Failed to update notifications")
@require_app_access
def notifications_read(request):
    """Mark read: {"id": 5} or {"all": true}."""
    data = parse_json_body(request)
    if data.get("all"):
        updated = mark_read(_email(request))
    elif data.get("id"):
        updated = mark_read(_email(request), notification_id=get_int(data, "id"))
    else:
        raise ApiError("Provide id or all")
    return json_success(updated=updated)


@api_view("GET", "PUT", error_message="Failed to update preferences")
@require_app_access
def notification_preferences(request):
    pref, _ = NotificationPreference.objects.get_or_create(user=request.user)
    if request.method == "PUT":
        data = parse_json_body(request)
        if "email_enabled" in data:
            pref.email_enabled = bool(data["email_enabled"])
        if "muted_categories" in data:
            muted = data["muted_categories"] or []
            if not isinstance(muted, list):
                raise ApiError("muted_categories must be a list")
            valid = {choice for choice, _ in UserNotification.CATEGORY_CHOICES}
            unknown = [c for c in muted if not isinstance(c, str) or c not in valid]
            if unknown:
                raise ApiError(f"Unknown categories: {', '.join(map(str, unknown))}")
            pref.muted_categories = muted
        pref.save()
    return json_success(preferences=pref.to_dict())


# ---- Announcements ----


def _read_ids(email):
    return set(
        AnnouncementRead.objects.filter(user_email=email).values_list(
            "announcement_id", flat=True
        )
    )


@api_view("GET", "POST", error_message="Failed to load announcements")
@require_app_access
def announcements(request):
    """
    GET: admins see every announcement with read counts; everyone else (or
    ?active=true) sees the live ones, most urgent first.
    POST (admin): create.
    """
    email = _email(request)

    if request.method == "POST":
        ensure_min_role(request.user, ROLE_ADMIN)
        form = validate_form(AnnouncementForm, parse_json_body(request))
        announcement = form.save(commit=False)
        announcement.created_by = request.user
        announcement.save()
        logger.info("Announcement %s created by %s", announcement.pk, email)
        return json_success(status=201, announcement=announcement.to_dict())

    read_ids = _read_ids(email)

    if is_admin(request.user) and not get_bool(request.GET, "active"):
        qs = Announcement.objects.select_related("created_by").annotate(
            read_count=Count("reads")
        )
        rows = []
        for a in qs:
            row = a.to_dict()
            row["read_count"] = a.read_count
            row["is_read"] = a.pk in read_ids
            rows.append(row)
        return json_success(announcements=rows)

    live = sorted(
        Announcement.objects.live().select_related("created_by"),
        key=lambda a: (Announcement.PRIORITY_RANK.get(a.priority, 9), a.starts_at),
    )
    rows = []
    for a in live:
        row = a.to_dict()
        row["is_read"] = a.pk in read_ids
        rows.append(row)
    return json_success(announcements=rows)


@api_view("PUT", "DELETE", error_message="Failed to update announcement")
@require_min_role(ROLE_ADMIN)
def announcement_detail(request, pk):
    announcement = get_object_or_404(Announcement, pk=pk)
    if request.method == "DELETE":
        announcement.delete()
        return json_success()

    form = validate_form(AnnouncementForm, parse_json_body(request), instance=announcement)
    announcement = form.save()
    return json_success(announcement=announcement.to_dict())


@api_view("POST", error_message="Failed to mark announcement read")
@require_app_access
def announcement_read(request, pk):
    announcement = get_object_or_404(Announcement, pk=pk)
    AnnouncementRead.objects.get_or_create(
        announcement=announcement,
        user_email=_email(request),
        defaults={"read_at": timezone.now()},
    )
    return json_success()
