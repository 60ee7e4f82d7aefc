"""
Views for instructor scheduling.

Handles:
- Open shifts: list (any instructor), create/edit/cancel (directors and admins)
- Shift signups: sign up / withdraw, confirm / decline (directors and admins)
- Shift trade requests: the accept / decline / approve / cancel workflow
- Instructor availability
"""
import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied
from django.db import IntegrityError, transaction
from django.db.models import Count, Q
from django.http import Http404
from django.shortcuts import get_object_or_404
from django.utils import timezone

from core.api import (
    api_view,
    get_bool,
    get_int,
    json_success,
    parse_json_body,
    require_fields,
    to_date,
    to_time,
    validate_form,
)
from core.decorators import require_app_access
from core.exceptions import ApiError
from core.mixins import stamp_audit
from core.permissions import can_approve_trades, can_manage_shifts, is_admin
from scheduling import services
from scheduling.forms import AvailabilityForm, ShiftForm
from scheduling.models import InstructorAvailability, Shift, ShiftSignup, ShiftTradeRequest

logger = logging.getLogger(__name__)

User = get_user_model()


def _ensure_shift_manager(user, message="Only directors can manage shifts"):
    if not can_manage_shifts(user):
        raise PermissionDenied(message)


# ---- Shifts ----


def _shift_rows(shifts, user):
    shift_ids = [s.pk for s in shifts]
    mine = {
        signup.shift_id: signup
        for signup in ShiftSignup.objects.filter(shift_id__in=shift_ids, instructor=user)
        .select_related("instructor")
    }
    rows = []
    for shift in shifts:
        row = shift.to_dict()
        row["signup_count"] = shift.signup_count
        row["confirmed_count"] = shift.confirmed_total
        row["is_filled"] = shift.is_full(confirmed=shift.confirmed_total)
        user_signup = mine.get(shift.pk)
        row["user_signup"] = user_signup.to_dict() if user_signup else None
        rows.append(row)
    return rows


def _annotated_shifts():
    return Shift.objects.select_related("created_by").annotate(
        signup_count=Count(
            "signups", filter=~Q(signups__status=ShiftSignup.STATUS_WITHDRAWN)
        ),
        confirmed_total=Count(
            "signups", filter=Q(signups__status=ShiftSignup.STATUS_CONFIRMED)
        ),
    )


def _create_shifts(request):
    _ensure_shift_manager(request.user, "Only directors can create shifts")
    data = parse_json_body(request)
    require_fields(data, "title", "start_time", "end_time")

    explicit_dates = data.pop("dates", None)
    repeat = data.pop("repeat", None)
    repeat_until = data.pop("repeat_until", None)

    if explicit_dates:
        if not isinstance(explicit_dates, list):
            raise ApiError("dates must be a list")
        shift_dates = sorted({to_date(d) for d in explicit_dates})
        if len(shift_dates) > services.MAX_RECURRING_SHIFTS:
            raise ApiError(f"Too many dates (max {services.MAX_RECURRING_SHIFTS} shifts)")
    elif data.get("date"):
        start = to_date(data["date"])
        if repeat:
            if repeat not in services.REPEAT_CHOICES:
                raise ApiError("repeat must be weekly, biweekly or monthly")
            if not repeat_until:
                raise ApiError("repeat_until is required for recurring shifts")
            try:
                shift_dates = services.recurring_dates(
                    start, repeat, to_date(repeat_until, "repeat_until")
                )
            except services.RecurrenceTooLong as exc:
                raise ApiError(str(exc)) from None
        else:
            shift_dates = [start]
    else:
        raise ApiError("Either date or dates array is required")

    if not shift_dates:
        raise ApiError("No shift dates in range")

    created = []
    with transaction.atomic():
        for shift_date in shift_dates:
            form = validate_form(ShiftForm, {**data, "date": shift_date})
            shift = form.save(commit=False)
            stamp_audit(shift, request.user, created=True)
            shift.save()
            created.append(shift)

    logger.info("%s shift(s) '%s' created by %s", len(created), data["title"], request.user.email)
    return json_success(
        status=201,
        shift=created[0].to_dict(),
        shifts=[s.to_dict() for s in created],
        count=len(created),
    )


@api_view("GET", "POST", error_message="Failed to fetch shifts")
@require_app_access
def shifts(request):
    """
    GET: shifts with signup counts and the caller's own signup.
        ?start_date ?end_date ?department
        ?include_filled (default true) ?include_cancelled (default false)
    POST (directors/admins): one date, a "dates" list, or "repeat" +
    "repeat_until" for recurring shifts.
    """
    if request.method == "POST":
        return _create_shifts(request)

    qs = _annotated_shifts()
    start_date = to_date(request.GET.get("start_date"), "start_date")
    if start_date:
        qs = qs.filter(date__gte=start_date)
    end_date = to_date(request.GET.get("end_date"), "end_date")
    if end_date:
        qs = qs.filter(date__lte=end_date)
    department = request.GET.get("department")
    if department:
        qs = qs.filter(department=department)
    if not get_bool(request.GET, "include_cancelled"):
        qs = qs.filter(is_cancelled=False)

    rows = _shift_rows(list(qs), request.user)
    if not get_bool(request.GET, "include_filled", default=True):
        rows = [r for r in rows if not r["is_filled"]]
    return json_success(shifts=rows)


@api_view("GET", "PUT", "DELETE", error_message="Failed to update shift")
@require_app_access
def shift_detail(request, pk):
    """GET: shift with its signups. PUT: partial update. DELETE: cancel."""
    shift = get_object_or_404(_annotated_shifts(), pk=pk)

    if request.method == "GET":
        row = _shift_rows([shift], request.user)[0]
        row["signups"] = [
            s.to_dict() for s in shift.signups.select_related("instructor")
        ]
        return json_success(shift=row)

    _ensure_shift_manager(request.user)

    if request.method == "DELETE":
        if shift.is_cancelled:
            raise ApiError("Shift is already cancelled")
        shift.is_cancelled = True
        shift.cancelled_at = timezone.now()
        stamp_audit(shift, request.user)
        shift.save()
        services.notify_shift_cancelled(shift)
        logger.info("Shift %s cancelled by %s", shift.pk, request.user.email)
        return json_success(shift=shift.to_dict())

    form = validate_form(ShiftForm, parse_json_body(request), instance=shift)
    shift = form.save(commit=False)
    stamp_audit(shift, request.user)
    shift.save()
    return json_success(shift=shift.to_dict())


@api_view("POST", "DELETE", error_message="Failed to update signup")
@require_app_access
def shift_signup(request, pk):
    """
    POST: sign up for a shift, optionally for part of it
        {"signup_start_time": "08:00", "signup_end_time": "12:00", "notes": "..."}
    DELETE: withdraw the caller's signup.
    """
    with transaction.atomic():
        shift = get_object_or_404(Shift.objects.select_for_update(), pk=pk)
        existing = ShiftSignup.objects.filter(shift=shift, instructor=request.user).first()

        if request.method == "DELETE":
            if existing is None:
                raise Http404("You are not signed up for this shift")
            existing.withdraw()
            return json_success(signup=existing.to_dict())

        if shift.is_cancelled:
            raise ApiError("Cannot sign up for a cancelled shift")
        if existing is not None and existing.is_active:
            raise ApiError("You are already signed up for this shift")
        if shift.is_full():
            raise ApiError("This shift is already full")

        data = parse_json_body(request)
        start = to_time(data.get("signup_start_time"), "signup_start_time") or shift.start_time
        end = to_time(data.get("signup_end_time"), "signup_end_time") or shift.end_time
        if end <= start:
            raise ApiError("Signup end time must be after the start time")

        signup = existing or ShiftSignup(shift=shift, instructor=request.user)
        signup.signup_start_time = start
        signup.signup_end_time = end
        signup.is_partial = start != shift.start_time or end != shift.end_time
        signup.status = ShiftSignup.STATUS_PENDING
        signup.confirmed_by = None
        signup.confirmed_at = None
        signup.declined_reason = ""
        signup.notes = data.get("notes") or ""
        signup.save()

    return json_success(status=201, signup=signup.to_dict())


@api_view("PUT", error_message="Failed to update signup")
@require_app_access
def signup_detail(request, pk):
    """Directors/admins: {"action": "confirm"} or {"action": "decline", "reason": "..."}."""
    _ensure_shift_manager(request.user, "Only directors can confirm signups")
    data = parse_json_body(request)
    action = data.get("action")

    with transaction.atomic():
        signup = get_object_or_404(
            ShiftSignup.objects.select_for_update().select_related("shift", "instructor"),
            pk=pk,
        )
        if action == "confirm":
            signup.confirm(request.user)
        elif action == "decline":
            signup.decline(request.user, data.get("reason"))
        else:
            raise ApiError("action must be confirm or decline")

    services.notify_signup_decision(signup)
    return json_success(signup=signup.to_dict())


# ---- Trades ----


def _trade_queryset():
    return ShiftTradeRequest.objects.select_related(
        "requester", "requester_shift", "target_user", "approved_by"
    )


def _create_trade(request):
    data = parse_json_body(request)
    require_fields(data, "requester_shift_id")

    shift = get_object_or_404(Shift, pk=get_int(data, "requester_shift_id"))
    has_confirmed = ShiftSignup.objects.filter(
        shift=shift, instructor=request.user, status=ShiftSignup.STATUS_CONFIRMED
    ).exists()
    if not has_confirmed:
        raise ApiError("You must have a confirmed signup for this shift to request a trade")

    if ShiftTradeRequest.objects.filter(
        requester=request.user,
        requester_shift=shift,
        status__in=ShiftTradeRequest.OPEN_STATUSES,
    ).exists():
        raise ApiError("You already have an active trade request for this shift")

    target_user = None
    if data.get("target_user_id"):
        target_user = get_object_or_404(User, pk=get_int(data, "target_user_id"))
    target_shift = None
    if data.get("target_shift_id"):
        target_shift = get_object_or_404(Shift, pk=get_int(data, "target_shift_id"))

    trade = ShiftTradeRequest.objects.create(
        requester=request.user,
        requester_shift=shift,
        target_user=target_user,
        target_shift=target_shift,
        reason=data.get("reason") or "",
    )
    services.notify_trade_requested(trade)
    logger.info("Trade %s requested by %s for shift %s", trade.pk, request.user.email, shift.pk)
    return json_success(status=201, trade=trade.to_dict())


def _update_trade(request):
    data = parse_json_body(request)
    require_fields(data, "id", "action")
    action = data["action"]
    note = data.get("response_note") or ""

    trade = get_object_or_404(_trade_queryset(), pk=get_int(data, "id"))

    if action == "cancel":
        trade.cancel(request.user)
    elif action == "accept":
        trade.accept(request.user, note)
        services.notify_trade_accepted(trade)
    elif action == "decline":
        trade.decline(request.user, note)
        services.notify_trade_declined(trade)
    elif action == "approve":
        if not can_approve_trades(request.user):
            raise PermissionDenied("Only directors and admins can approve trade requests")
        trade.approve(request.user)
        trade = _trade_queryset().get(pk=trade.pk)
        services.notify_trade_approved(trade)
    else:
        raise ApiError("Unknown action")

    logger.info("Trade %s %s by %s", trade.pk, trade.status, request.user.email)
    return json_success(trade=trade.to_dict())


@api_view("GET", "POST", "PUT", error_message="Failed to process trade request")
@require_app_access
def trades(request):
    """
    GET: trade requests. ?status filters; ?mine=true limits to the caller's
    own requests. Directors/admins see everything; others see requests they
    made or received.
    POST: {"requester_shift_id", "reason", "target_user_id"?, "target_shift_id"?}
    PUT: {"id", "action": accept|decline|approve|cancel, "response_note"?}
    """
    if request.method == "POST":
        return _create_trade(request)
    if request.method == "PUT":
        return _update_trade(request)

    qs = _trade_queryset()
    status = request.GET.get("status")
    if status:
        qs = qs.filter(status=status)

    involved = Q(requester=request.user) | Q(target_user=request.user)
    if get_bool(request.GET, "mine"):
        qs = qs.filter(requester=request.user)
    elif not can_approve_trades(request.user):
        qs = qs.filter(involved)

    return json_success(trades=[t.to_dict() for t in qs])


# ---- Availability ----


@api_view("GET", "POST", error_message="Failed to load availability")
@require_app_access
def availability(request):
    """
    GET: ?start_date ?end_date; admins may pass ?instructor_id.
    POST: {"entries": [{"date", "is_all_day", "start_time", "end_time", "notes"}]}
    saves (or replaces) the caller's availability for each slot.
    """
    if request.method == "POST":
        data = parse_json_body(request)
        entries = data.get("entries")
        if not isinstance(entries, list) or not entries:
            raise ApiError("entries must be a non-empty list")

        saved = []
        with transaction.atomic():
            for entry in entries:
                form = validate_form(AvailabilityForm, entry)
                values = form.cleaned_data
                try:
                    row, _ = InstructorAvailability.objects.update_or_create(
                        instructor=request.user,
                        date=values["date"],
                        start_time=values["start_time"],
                        defaults={
                            "is_all_day": values["is_all_day"],
                            "end_time": values["end_time"],
                            "notes": values.get("notes") or "",
                        },
                    )
                except IntegrityError:
                    raise ApiError(f"Duplicate availability for {values['date']}") from None
                saved.append(row)
        return json_success(status=201, availability=[r.to_dict() for r in saved])

    instructor = request.user
    instructor_id = get_int(request.GET, "instructor_id")
    if instructor_id and instructor_id != request.user.pk:
        if not is_admin(request.user):
            raise PermissionDenied("Only admins can view other instructors' availability")
        instructor = get_object_or_404(User, pk=instructor_id)

    qs = InstructorAvailability.objects.filter(instructor=instructor)
    start_date = to_date(request.GET.get("start_date"), "start_date")
    if start_date:
        qs = qs.filter(date__gte=start_date)
    end_date = to_date(request.GET.get("end_date"), "end_date")
    if end_date:
        qs = qs.filter(date__lte=end_date)
    return json_success(availability=[r.to_dict() for r in qs])


@api_view("DELETE", error_message="Failed to delete availability")
@require_app_access
def availability_detail(request, pk):
    row = get_object_or_404(InstructorAvailability, pk=pk)
    if row.instructor_id != request.user.pk:
        raise PermissionDenied("You can only delete your own availability")
    row.delete()
    return json_success()
