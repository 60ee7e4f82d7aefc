"""
Scheduling helpers: recurring shift dates and the notifications sent as
signups and trade requests move through their workflows.
"""
import calendar
import logging
from datetime import timedelta

from notifications.models import UserNotification
from notifications.services import create_notification, notify_admins, notify_safely

logger = logging.getLogger(__name__)

REPEAT_WEEKLY = "weekly"
REPEAT_BIWEEKLY = "biweekly"
REPEAT_MONTHLY = "monthly"
REPEAT_CHOICES = (REPEAT_WEEKLY, REPEAT_BIWEEKLY, REPEAT_MONTHLY)

TRADES_LINK = "/scheduling/shifts?tab=trades"
MY_SHIFTS_LINK = "/scheduling/shifts?filter=mine"

# Upper bound on shifts created by one request.
MAX_RECURRING_SHIFTS = 104


class RecurrenceTooLong(ValueError):
    pass


def _add_months(start, months):
    """Same day-of-month ``months`` later, clamped to the length of that month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def recurring_dates(start, repeat, until):
    """
    Dates from ``start`` through ``until`` (inclusive) for a repeat pattern.

    Monthly repeats keep the starting day of month where possible, so a shift
    on Jan 31 repeats on Feb 28/29, Mar 31, Apr 30, ...

    Raises RecurrenceTooLong when the range holds more than
    MAX_RECURRING_SHIFTS dates.
    """
    if repeat not in REPEAT_CHOICES:
        raise ValueError(f"Unknown repeat pattern: {repeat}")
    dates = []
    step = 0
    current = start
    while current <= until:
        if len(dates) == MAX_RECURRING_SHIFTS:
            raise RecurrenceTooLong(
                f"Recurring range too long (max {MAX_RECURRING_SHIFTS} shifts)"
            )
        dates.append(current)
        step += 1
        if repeat == REPEAT_WEEKLY:
            current = start + timedelta(weeks=step)
        elif repeat == REPEAT_BIWEEKLY:
            current = start + timedelta(weeks=2 * step)
        else:
            current = _add_months(start, step)
    return dates


def _name(user):
    return user.get_full_name() or user.email


def _notify(user_email, title, message, trade, link=TRADES_LINK):
    if not user_email:
        return
    notify_safely(
        create_notification,
        user_email,
        title,
        message,
        type=UserNotification.TYPE_SHIFT_TRADE,
        category=UserNotification.CATEGORY_SCHEDULING,
        link_url=link,
        reference_type="shift_trade_request",
        reference_id=trade.pk,
    )


def notify_trade_requested(trade):
    notify_safely(
        notify_admins,
        "New shift trade request",
        f'{_name(trade.requester)} requested a trade for "{trade.requester_shift.title}" '
        f"on {trade.requester_shift.date.isoformat()}",
        exclude_email=trade.requester.email,
        type=UserNotification.TYPE_SHIFT_TRADE,
        category=UserNotification.CATEGORY_SCHEDULING,
        link_url=TRADES_LINK,
        reference_type="shift_trade_request",
        reference_id=trade.pk,
    )


def notify_trade_accepted(trade):
    shift_title = trade.requester_shift.title
    _notify(
        trade.requester.email,
        "Trade request accepted",
        f'{_name(trade.target_user)} accepted your trade request for "{shift_title}" '
        "and it is awaiting director approval",
        trade,
    )
    notify_safely(
        notify_admins,
        "Shift trade needs approval",
        f"{_name(trade.target_user)} accepted a trade from {_name(trade.requester)} "
        "and it is pending your approval",
        type=UserNotification.TYPE_SHIFT_TRADE,
        category=UserNotification.CATEGORY_SCHEDULING,
        link_url=TRADES_LINK,
        reference_type="shift_trade_request",
        reference_id=trade.pk,
    )


def notify_trade_declined(trade):
    _notify(
        trade.requester.email,
        "Trade request declined",
        f'Your trade request for "{trade.requester_shift.title}" was declined',
        trade,
    )


def notify_trade_approved(trade):
    shift_title = trade.requester_shift.title
    _notify(
        trade.requester.email,
        "Trade approved",
        f'Your trade request for "{shift_title}" was approved. You are no longer scheduled.',
        trade,
        link=MY_SHIFTS_LINK,
    )
    _notify(
        trade.target_user.email,
        "Trade approved: you are now scheduled",
        f'Your acceptance of the trade for "{shift_title}" was approved. '
        "You are now confirmed for this shift.",
        trade,
        link=MY_SHIFTS_LINK,
    )


def notify_signup_decision(signup):
    shift = signup.shift
    if signup.status == signup.STATUS_CONFIRMED:
        title = "Shift signup confirmed"
        message = f'You are confirmed for "{shift.title}" on {shift.date.isoformat()}'
    else:
        title = "Shift signup declined"
        message = f'Your signup for "{shift.title}" on {shift.date.isoformat()} was declined'
        if signup.declined_reason:
            message += f": {signup.declined_reason}"
    notify_safely(
        create_notification,
        signup.instructor.email,
        title,
        message,
        type=UserNotification.TYPE_SHIFT,
        category=UserNotification.CATEGORY_SCHEDULING,
        link_url=MY_SHIFTS_LINK,
        reference_type="shift_signup",
        reference_id=signup.pk,
    )


def notify_shift_cancelled(shift):
    for signup in shift.signups.exclude(status="withdrawn").select_related("instructor"):
        notify_safely(
            create_notification,
            signup.instructor.email,
            "Shift cancelled",
            f'"{shift.title}" on {shift.date.isoformat()} has been cancelled',
            type=UserNotification.TYPE_SHIFT,
            category=UserNotification.CATEGORY_SCHEDULING,
            link_url=MY_SHIFTS_LINK,
            reference_type="shift",
            reference_id=shift.pk,
        )
