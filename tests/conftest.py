from datetime import date, time

import pytest
import requests
from django.contrib.auth import get_user_model

from core.models import Endorsement, ProgramStaff
from core.permissions import (
    ROLE_ADMIN,
    ROLE_GUEST,
    ROLE_INSTRUCTOR,
    ROLE_LEAD_INSTRUCTOR,
    ROLE_SUPERADMIN,
    set_role,
)
from lab_management.models import Cohort, Program, Student
from scheduling.models import Shift

User = get_user_model()


@pytest.fixture(autouse=True)
def _offline_http_guard(monkeypatch):
    """Nothing under test may reach a real HTTP endpoint."""

    def blocked(self, method, url, *args, **kwargs):
        raise RuntimeError(f"External HTTP blocked in tests: {method} {url}")

    monkeypatch.setattr(requests.sessions.Session, "request", blocked)


@pytest.fixture(autouse=True)
def _test_settings(settings):
    settings.CRON_SECRET = ""
    settings.PROTECTED_SUPERADMINS = []
    settings.ALLOWED_SIGNUP_DOMAINS = []
    settings.APP_NAME = "PMI Tools"
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"


@pytest.fixture
def make_user(db):
    """make_user("lead@example.com", role=ROLE_LEAD_INSTRUCTOR)"""

    def _make(email, role=None, staff=True, first_name="", last_name="", **extra):
        user = User.objects.create_user(
            username=email.split("@")[0],
            email=email,
            first_name=first_name,
            last_name=last_name,
            **extra,
        )
        if staff:
            ProgramStaff.objects.create(user=user)
        if role:
            set_role(user, role)
        return user

    return _make


@pytest.fixture
def superadmin(make_user):
    return make_user("super@example.com", ROLE_SUPERADMIN, first_name="Sam", last_name="Super")


@pytest.fixture
def admin_user(make_user):
    return make_user("admin@example.com", ROLE_ADMIN, first_name="Ada", last_name="Admin")


@pytest.fixture
def lead(make_user):
    return make_user("lead@example.com", ROLE_LEAD_INSTRUCTOR, first_name="Lee", last_name="Lead")


@pytest.fixture
def instructor(make_user):
    return make_user("inst@example.com", ROLE_INSTRUCTOR, first_name="Ivy", last_name="Instructor")


@pytest.fixture
def instructor2(make_user):
    return make_user("inst2@example.com", ROLE_INSTRUCTOR, first_name="Ian", last_name="Other")


@pytest.fixture
def guest(make_user):
    return make_user("guest@example.com", ROLE_GUEST, first_name="Gus", last_name="Guest")


@pytest.fixture
def pending_user(make_user):
    return make_user("pending@example.com", staff=False, first_name="Pat", last_name="Pending")


@pytest.fixture
def director(make_user):
    user = make_user("director@example.com", ROLE_INSTRUCTOR, first_name="Dee", last_name="Director")
    Endorsement.objects.create(user=user, endorsement_type=Endorsement.DIRECTOR)
    return user


@pytest.fixture
def login(client):
    """login(user) -> a test client signed in as ``user``."""

    def _login(user):
        client.force_login(user)
        return client

    return _login


@pytest.fixture
def program(db):
    return Program.objects.create(name="Paramedic", abbreviation="PM")


@pytest.fixture
def cohort(program):
    return Cohort.objects.create(
        program=program,
        cohort_number=12,
        start_date=date(2026, 1, 12),
        expected_end_date=date(2026, 12, 18),
    )


@pytest.fixture
def make_student(cohort):
    def _make(first_name="Jane", last_name="Doe", **extra):
        extra.setdefault("cohort", cohort)
        extra.setdefault("email", f"{first_name}.{last_name}@students.example.com".lower())
        return Student.objects.create(first_name=first_name, last_name=last_name, **extra)

    return _make


@pytest.fixture
def make_shift(db):
    def _make(**extra):
        values = {
            "title": "Skills lab coverage",
            "date": date(2030, 3, 16),
            "start_time": time(8, 0),
            "end_time": time(16, 0),
            "min_instructors": 1,
            "max_instructors": 2,
        }
        values.update(extra)
        return Shift.objects.create(**values)

    return _make
