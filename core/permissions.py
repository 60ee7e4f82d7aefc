"""
Access control and permissions for the paramedic program tools.

This module implements a two-layer access control system:

Layer 1: App-Level Access (Profile + Group)
-------------------------------------------
Enforced by the decorators in core.decorators.
Users must have:
  1. Authentication (login)
  2. An active ProgramStaff profile
  3. Group membership (at least one role group)

Layer 2: Role and Endorsement checks
------------------------------------
Roles are ordered; most checks are "at least this role":

  - Superadmins (5): everything, including system configuration
  - Admins (4): user management, announcements, alerts, archiving
  - Lead Instructors (3): cohort analytics, student email, difficulty changes
  - Instructors (2): day-to-day lab work, shift signups
  - Guests (1): read-only directory information

Endorsements (see core.models.Endorsement) add authority independent of the
role. A director can manage shifts and approve trades.

Student records are sanitised per role (FERPA): see sanitize_student().

Usage Example
-------------
    from core.decorators import require_min_role
    from core.permissions import ROLE_LEAD_INSTRUCTOR, has_min_role

    @api_view("GET")
    @require_min_role(ROLE_LEAD_INSTRUCTOR)
    def my_view(request):
        ...
"""
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied
from django.db.models import Q

from core.models import Endorsement

# ---- Group names (single source of truth) ----

GROUP_SUPERADMINS = "Superadmins"
GROUP_ADMINS = "Admins"
GROUP_LEAD_INSTRUCTORS = "Lead Instructors"
GROUP_INSTRUCTORS = "Instructors"
GROUP_GUESTS = "Guests"

# ---- Roles ----

ROLE_SUPERADMIN = "superadmin"
ROLE_ADMIN = "admin"
ROLE_LEAD_INSTRUCTOR = "lead_instructor"
ROLE_INSTRUCTOR = "instructor"
ROLE_GUEST = "guest"

ROLE_LEVELS = {
    ROLE_SUPERADMIN: 5,
    ROLE_ADMIN: 4,
    ROLE_LEAD_INSTRUCTOR: 3,
    ROLE_INSTRUCTOR: 2,
    ROLE_GUEST: 1,
}

ROLE_GROUPS = {
    ROLE_SUPERADMIN: GROUP_SUPERADMINS,
    ROLE_ADMIN: GROUP_ADMINS,
    ROLE_LEAD_INSTRUCTOR: GROUP_LEAD_INSTRUCTORS,
    ROLE_INSTRUCTOR: GROUP_INSTRUCTORS,
    ROLE_GUEST: GROUP_GUESTS,
}

GROUP_ROLES = {group: role for role, group in ROLE_GROUPS.items()}

ROLE_LABELS = {
    ROLE_SUPERADMIN: "Super Admin",
    ROLE_ADMIN: "Admin",
    ROLE_LEAD_INSTRUCTOR: "Lead Instructor",
    ROLE_INSTRUCTOR: "Instructor",
    ROLE_GUEST: "Guest",
}

# Minimum role needed to see each protected student field. Fields not listed
# here are directory information and visible to everyone with app access.
STUDENT_FIELD_MIN_ROLE = {
    "email": ROLE_LEAD_INSTRUCTOR,
    "agency": ROLE_INSTRUCTOR,
    "photo_url": ROLE_INSTRUCTOR,
    "learning_style": ROLE_INSTRUCTOR,
    "notes": ROLE_INSTRUCTOR,
}

# ---- Role helpers -----------------------------------------------------------


def get_role(user):
    """
    Return the user's highest role key, or None for users without a role.

    Superusers are always superadmins.
    """
    if not user or not user.is_authenticated:
        return None
    if user.is_superuser:
        return ROLE_SUPERADMIN
    group_names = user.groups.filter(name__in=GROUP_ROLES).values_list("name", flat=True)
    roles = [GROUP_ROLES[name] for name in group_names]
    if not roles:
        return None
    return max(roles, key=ROLE_LEVELS.get)


def role_level(role) -> int:
    return ROLE_LEVELS.get(role, 0)


def has_min_role(user, role) -> bool:
    """Does the user hold ``role`` or anything above it?"""
    return role_level(get_role(user)) >= role_level(role)


def ensure_min_role(user, role):
    """Raise PermissionDenied unless the user holds at least ``role``."""
    if not has_min_role(user, role):
        raise PermissionDenied("Insufficient permissions")


def is_superadmin(user) -> bool:
    return has_min_role(user, ROLE_SUPERADMIN)


def is_admin(user) -> bool:
    """Admins and superadmins (plus superusers)."""
    return has_min_role(user, ROLE_ADMIN)


def is_lead_instructor(user) -> bool:
    return has_min_role(user, ROLE_LEAD_INSTRUCTOR)


def is_instructor(user) -> bool:
    return has_min_role(user, ROLE_INSTRUCTOR)


def has_app_access(user) -> bool:
    """
    Check if user has any role that grants access to the application.
    Requires an active ProgramStaff profile + a role group membership.
    """
    if not user or not user.is_authenticated:
        return False

    if user.is_superuser:
        return True

    staff = getattr(user, "program_staff", None)
    if staff is None or not staff.is_active:
        return False

    return user.groups.filter(name__in=GROUP_ROLES).exists()


def groups_at_or_above(role):
    """Group names for ``role`` and every role above it."""
    level = role_level(role)
    return [ROLE_GROUPS[r] for r, lvl in ROLE_LEVELS.items() if lvl >= level]


def users_with_min_role(role):
    """Active users holding at least ``role``, with an email address."""
    User = get_user_model()
    return (
        User.objects.filter(is_active=True)
        .filter(Q(is_superuser=True) | Q(groups__name__in=groups_at_or_above(role)))
        .exclude(email__isnull=True)
        .exclude(email__exact="")
        .distinct()
    )


def set_role(user, role):
    """Replace the user's role group with ``role`` (None removes all roles)."""
    from django.contrib.auth.models import Group

    user.groups.remove(*user.groups.filter(name__in=GROUP_ROLES))
    if role:
        group, _ = Group.objects.get_or_create(name=ROLE_GROUPS[role])
        user.groups.add(group)


# ---- Role assignment ---------------------------------------------------------


def is_protected_superadmin(user) -> bool:
    """Protected superadmin accounts (settings.PROTECTED_SUPERADMINS) can't be demoted."""
    protected = getattr(settings, "PROTECTED_SUPERADMINS", [])
    return bool(user and user.email and user.email.lower() in protected)


def can_assign_role(assigner, role) -> bool:
    """
    Which roles can a user hand out?

    - Superadmins: any role.
    - Admins: only roles below their own (lead instructor and down).
    - Others: none.
    """
    if role not in ROLE_LEVELS:
        return False
    assigner_role = get_role(assigner)
    if assigner_role == ROLE_SUPERADMIN:
        return True
    if role_level(assigner_role) < ROLE_LEVELS[ROLE_ADMIN]:
        return False
    return ROLE_LEVELS[role] < role_level(assigner_role)


def can_modify_user(assigner, target) -> bool:
    """
    Can ``assigner`` change ``target``'s role?

    Superadmins can modify anyone except a protected superadmin; admins can
    modify users strictly below them. Nobody modifies themselves.
    """
    if assigner.pk == target.pk:
        return False
    if is_protected_superadmin(target):
        return False
    assigner_role = get_role(assigner)
    if assigner_role == ROLE_SUPERADMIN:
        return True
    if role_level(assigner_role) < ROLE_LEVELS[ROLE_ADMIN]:
        return False
    return role_level(get_role(target)) < role_level(assigner_role)


# ---- Endorsements -------------------------------------------------------------


def has_endorsement(user, endorsement_type) -> bool:
    if not user or not user.is_authenticated:
        return False
    return Endorsement.objects.current().filter(
        user=user, endorsement_type=endorsement_type
    ).exists()


def is_director(user) -> bool:
    return has_endorsement(user, Endorsement.DIRECTOR)


def can_manage_shifts(user) -> bool:
    """Directors and admins create, edit and cancel shifts and confirm signups."""
    return is_admin(user) or is_director(user)


def can_approve_trades(user) -> bool:
    """Directors and admins give final approval on shift trades."""
    return is_admin(user) or is_director(user)


# ---- Student data (FERPA) -----------------------------------------------------


def can_view_student_field(role, field_name) -> bool:
    required = STUDENT_FIELD_MIN_ROLE.get(field_name)
    if required is None:
        return True
    return role_level(role) >= role_level(required)


def sanitize_student(data: dict, user, role=None) -> dict:
    """
    Strip student fields the user's role is not allowed to see.

    Guests get directory information only (name, cohort, status). Pass
    ``role`` when sanitising many records so the role is looked up once.
    """
    if role is None:
        role = get_role(user)
    return {
        key: value
        for key, value in data.items()
        if can_view_student_field(role, key)
    }
