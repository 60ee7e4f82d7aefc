from datetime import date

import pytest

from core.exceptions import WorkflowError
from notifications.models import UserNotification
from scheduling.models import InstructorAvailability, Shift, ShiftSignup, ShiftTradeRequest
from scheduling.services import MAX_RECURRING_SHIFTS, RecurrenceTooLong, recurring_dates

pytestmark = pytest.mark.django_db


def test_recurring_dates():
    assert recurring_dates(date(2026, 1, 5), "weekly", date(2026, 1, 26)) == [
        date(2026, 1, 5),
        date(2026, 1, 12),
        date(2026, 1, 19),
        date(2026, 1, 26),
    ]
    assert recurring_dates(date(2026, 1, 5), "biweekly", date(2026, 1, 26)) == [
        date(2026, 1, 5),
        date(2026, 1, 19),
    ]
    # Month ends are clamped without drifting.
    assert recurring_dates(date(2026, 1, 31), "monthly", date(2026, 4, 30)) == [
        date(2026, 1, 31),
        date(2026, 2, 28),
        date(2026, 3, 31),
        date(2026, 4, 30),
    ]



def test_recurring_dates_refuse_long_ranges():
    dates = recurring_dates(date(2026, 1, 5), "weekly", date(2027, 12, 27))
    assert len(dates) == MAX_RECURRING_SHIFTS
    with pytest.raises(RecurrenceTooLong):
        recurring_dates(date(2026, 1, 5), "weekly", date(2029, 12, 31))


# ---- Shifts ----


def test_only_directors_create_shifts(login, instructor, director):
    payload = {
        "title": "Open lab",
        "date": "2030-05-04",
        "start_time": "08:00",
        "end_time": "12:00",
    }
    response = login(instructor).post("/api/scheduling/shifts/", data=payload, content_type="application/json")
    assert response.status_code == 403

    response = login(director).post("/api/scheduling/shifts/", data=payload, content_type="application/json")
    assert response.status_code == 201
    assert response.json()["count"] == 1
    assert response.json()["shift"]["min_instructors"] == 1


def test_recurring_shift_creation(login, admin_user):
    response = login(admin_user).post(
        "/api/scheduling/shifts/",
        data={
            "title": "Weekly skills",
            "date": "2030-05-06",
            "start_time": "13:00",
            "end_time": "17:00",
            "repeat": "weekly",
            "repeat_until": "2030-05-27",
        },
        content_type="application/json",
    )
    assert response.status_code == 201
    assert [s["date"] for s in response.json()["shifts"]] == [
        "2030-05-06",
        "2030-05-13",
        "2030-05-20",
        "2030-05-27",
    ]



def test_recurring_range_too_long(login, director):
    response = login(director).post(
        "/api/scheduling/shifts/",
        data={
            "title": "Weekly skills",
            "date": "2026-01-05",
            "start_time": "13:00",
            "end_time": "17:00",
            "repeat": "weekly",
            "repeat_until": "2029-12-31",
        },
        content_type="application/json",
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Recurring range too long (max 104 shifts)"
    assert not Shift.objects.exists()


def test_shift_needs_a_date(login, director):
    response = login(director).post(
        "/api/scheduling/shifts/",
        data={"title": "No date", "start_time": "08:00", "end_time": "12:00"},
        content_type="application/json",
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Either date or dates array is required"


def test_shift_list_includes_own_signup(login, instructor, make_shift):
    shift = make_shift()
    ShiftSignup.objects.create(shift=shift, instructor=instructor)
    rows = login(instructor).get("/api/scheduling/shifts/").json()["shifts"]
    assert rows[0]["signup_count"] == 1
    assert rows[0]["user_signup"]["status"] == "pending"


def test_cancelling_shift_notifies_signups(login, director, instructor, make_shift):
    shift = make_shift()
    ShiftSignup.objects.create(shift=shift, instructor=instructor)
    response = login(director).delete(f"/api/scheduling/shifts/{shift.pk}/")
    assert response.status_code == 200
    assert UserNotification.objects.filter(
        user_email=instructor.email, title="Shift cancelled"
    ).exists()


# ---- Signups ----


def test_partial_signup(login, instructor, make_shift):
    shift = make_shift()
    response = login(instructor).post(
        f"/api/scheduling/shifts/{shift.pk}/signup/",
        data={"signup_start_time": "08:00", "signup_end_time": "12:00"},
        content_type="application/json",
    )
    assert response.status_code == 201
    assert response.json()["signup"]["is_partial"] is True


def test_signup_rejects_bad_times_and_duplicates(login, instructor, make_shift):
    shift = make_shift()
    client = login(instructor)
    url = f"/api/scheduling/shifts/{shift.pk}/signup/"
    bad = client.post(
        url, data={"signup_start_time": "12:00", "signup_end_time": "09:00"}, content_type="application/json"
    )
    assert bad.status_code == 400

    assert client.post(url, content_type="application/json").status_code == 201
    again = client.post(url, content_type="application/json")
    assert again.status_code == 400
    assert again.json()["error"] == "You are already signed up for this shift"

    assert client.delete(url).status_code == 200
    assert client.post(url, content_type="application/json").status_code == 201


def test_full_shift_refuses_signups(login, instructor, instructor2, make_shift):
    shift = make_shift(max_instructors=1)
    ShiftSignup.objects.create(shift=shift, instructor=instructor2, status=ShiftSignup.STATUS_CONFIRMED)
    response = login(instructor).post(f"/api/scheduling/shifts/{shift.pk}/signup/", content_type="application/json")
    assert response.status_code == 400
    assert response.json()["error"] == "This shift is already full"


def test_director_confirms_signup(login, director, instructor, make_shift):
    signup = ShiftSignup.objects.create(shift=make_shift(), instructor=instructor)
    client = login(director)
    response = client.put(
        f"/api/scheduling/signups/{signup.pk}/", data={"action": "confirm"}, content_type="application/json"
    )
    assert response.status_code == 200
    assert response.json()["signup"]["status"] == "confirmed"
    assert UserNotification.objects.filter(
        user_email=instructor.email, title="Shift signup confirmed"
    ).exists()

    again = client.put(
        f"/api/scheduling/signups/{signup.pk}/", data={"action": "confirm"}, content_type="application/json"
    )
    assert again.status_code == 400


def test_confirm_refused_when_full(instructor, instructor2, director, make_shift):
    shift = make_shift(max_instructors=1)
    ShiftSignup.objects.create(shift=shift, instructor=instructor2, status=ShiftSignup.STATUS_CONFIRMED)
    signup = ShiftSignup.objects.create(shift=shift, instructor=instructor)
    with pytest.raises(WorkflowError):
        signup.confirm(director)


# ---- Trades ----


@pytest.fixture
def confirmed_shift(make_shift, instructor):
    shift = make_shift()
    ShiftSignup.objects.create(shift=shift, instructor=instructor, status=ShiftSignup.STATUS_CONFIRMED)
    return shift


def _trade(client, **payload):
    return client.post("/api/scheduling/trades/", data=payload, content_type="application/json")


def _act(client, trade_id, action, **extra):
    return client.put(
        "/api/scheduling/trades/",
        data={"id": trade_id, "action": action, **extra},
        content_type="application/json",
    )


def test_trade_needs_confirmed_signup(login, instructor2, confirmed_shift):
    response = _trade(login(instructor2), requester_shift_id=confirmed_shift.pk)
    assert response.status_code == 400


def test_full_trade_workflow(login, instructor, instructor2, director, admin_user, confirmed_shift):
    response = _trade(login(instructor), requester_shift_id=confirmed_shift.pk, reason="Family event")
    assert response.status_code == 201
    trade_id = response.json()["trade"]["id"]
    assert UserNotification.objects.filter(
        user_email=admin_user.email, reference_type="shift_trade_request"
    ).exists()

    duplicate = _trade(login(instructor), requester_shift_id=confirmed_shift.pk)
    assert duplicate.status_code == 400

    response = _act(login(instructor2), trade_id, "accept", response_note="Happy to cover")
    assert response.status_code == 200
    assert response.json()["trade"]["status"] == "accepted"

    # Accepted trades can't be declined any more.
    assert _act(login(instructor2), trade_id, "decline").status_code == 400
    # Instructors without an endorsement can't approve.
    assert _act(login(instructor2), trade_id, "approve").status_code == 403

    response = _act(login(director), trade_id, "approve")
    assert response.status_code == 200
    assert response.json()["trade"]["status"] == "approved"

    signups = {s.instructor_id: s.status for s in ShiftSignup.objects.filter(shift=confirmed_shift)}
    assert signups == {
        instructor.pk: ShiftSignup.STATUS_WITHDRAWN,
        instructor2.pk: ShiftSignup.STATUS_CONFIRMED,
    }
    assert UserNotification.objects.filter(
        user_email=instructor2.email, title="Trade approved: you are now scheduled"
    ).exists()

    # Resolved requests stay resolved.
    assert _act(login(instructor), trade_id, "cancel").status_code == 400


def test_cannot_accept_own_trade(login, instructor, confirmed_shift):
    client = login(instructor)
    trade_id = _trade(client, requester_shift_id=confirmed_shift.pk).json()["trade"]["id"]
    response = _act(client, trade_id, "accept")
    assert response.status_code == 400
    assert response.json()["error"] == "You cannot accept your own trade request"


def test_only_requester_cancels(login, instructor, instructor2, confirmed_shift):
    trade_id = _trade(login(instructor), requester_shift_id=confirmed_shift.pk).json()["trade"]["id"]
    assert _act(login(instructor2), trade_id, "cancel").status_code == 403
    response = _act(login(instructor), trade_id, "cancel")
    assert response.status_code == 200
    assert ShiftTradeRequest.objects.get(pk=trade_id).status == ShiftTradeRequest.STATUS_CANCELLED


def test_approve_requires_accepted(instructor, director, confirmed_shift):
    trade = ShiftTradeRequest.objects.create(requester=instructor, requester_shift=confirmed_shift)
    with pytest.raises(WorkflowError):
        trade.approve(director)
    trade.refresh_from_db()
    assert trade.status == ShiftTradeRequest.STATUS_PENDING


def test_trade_list_visibility(login, instructor, instructor2, director, confirmed_shift):
    ShiftTradeRequest.objects.create(requester=instructor, requester_shift=confirmed_shift)
    assert len(login(instructor2).get("/api/scheduling/trades/").json()["trades"]) == 0
    assert len(login(instructor).get("/api/scheduling/trades/").json()["trades"]) == 1
    assert len(login(director).get("/api/scheduling/trades/").json()["trades"]) == 1


# ---- Availability ----


def test_availability_entries(login, instructor, instructor2):
    client = login(instructor)
    response = client.post(
        "/api/scheduling/availability/",
        data={
            "entries": [
                {"date": "2030-06-03", "is_all_day": True},
                {"date": "2030-06-04", "is_all_day": False, "start_time": "09:00", "end_time": "13:00"},
            ]
        },
        content_type="application/json",
    )
    assert response.status_code == 201
    assert len(response.json()["availability"]) == 2

    bad = client.post(
        "/api/scheduling/availability/",
        data={"entries": [{"date": "2030-06-05", "is_all_day": False}]},
        content_type="application/json",
    )
    assert bad.status_code == 400

    rows = client.get("/api/scheduling/availability/?start_date=2030-06-04").json()["availability"]
    assert [r["date"] for r in rows] == ["2030-06-04"]

    other = client.get(f"/api/scheduling/availability/?instructor_id={instructor2.pk}")
    assert other.status_code == 403

    row = InstructorAvailability.objects.filter(instructor=instructor).first()
    assert login(instructor2).delete(f"/api/scheduling/availability/{row.pk}/").status_code == 403


def test_declining_a_pending_trade(login, instructor, instructor2, confirmed_shift):
    trade_id = _trade(login(instructor), requester_shift_id=confirmed_shift.pk).json()["trade"]["id"]

    response = _act(login(instructor2), trade_id, "decline", response_note="Can't make it")
    assert response.status_code == 200
    trade = ShiftTradeRequest.objects.get(pk=trade_id)
    assert trade.status == ShiftTradeRequest.STATUS_DECLINED
    assert trade.response_note == "Can't make it"
    assert trade.target_user == instructor2
    assert UserNotification.objects.filter(
        user_email=instructor.email, title="Trade request declined"
    ).exists()

    # Declined requests are closed.
    assert _act(login(instructor2), trade_id, "accept").status_code == 400
    assert ShiftSignup.objects.get(shift=confirmed_shift).status == ShiftSignup.STATUS_CONFIRMED


def test_cancelling_a_pending_trade_keeps_the_signup(instructor, confirmed_shift):
    trade = ShiftTradeRequest.objects.create(requester=instructor, requester_shift=confirmed_shift)
    trade.cancel(instructor)
    trade.refresh_from_db()
    assert trade.status == ShiftTradeRequest.STATUS_CANCELLED
    assert ShiftSignup.objects.get(shift=confirmed_shift).status == ShiftSignup.STATUS_CONFIRMED
    with pytest.raises(WorkflowError):
        trade.cancel(instructor)


def test_non_numeric_trade_id_is_rejected(login, instructor):
    response = _act(login(instructor), "abc", "cancel")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid id"
