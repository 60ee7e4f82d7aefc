"""
Certification expiry reminders.

Checks field preceptor health district certifications and instructor
endorsements expiring within LOOKAHEAD_DAYS. On the exact threshold days the
holder is reminded and every admin gets an alert. Holder reminders are
deduplicated over a one-day lookback; admin alerts once per record per day.
"""
import logging
from datetime import timedelta

from django.utils import timezone

from clinical.models import FieldPreceptor
from core.models import Endorsement
from core.permissions import ROLE_ADMIN, users_with_min_role
from notifications.models import UserNotification
from notifications.services import create_notification, was_notified_since
from system.jobs.base import format_day, plural_days

logger = logging.getLogger(__name__)

CERT_REMINDER_THRESHOLDS_DAYS = [90, 60, 30, 14]
LOOKAHEAD_DAYS = 91
DEDUP_LOOKBACK = timedelta(days=1)

REF_PRECEPTOR_REMINDER = "snhd_cert_expiry_reminder"
REF_PRECEPTOR_ADMIN = "snhd_cert_expiry_admin_alert"
REF_ENDORSEMENT_REMINDER = "endorsement_expiry_reminder"
REF_ENDORSEMENT_ADMIN = "endorsement_expiry_admin_alert"


def matching_threshold(days_until):
    return days_until if days_until in CERT_REMINDER_THRESHOLDS_DAYS else None


def _admin_alerted(reference_type, reference_id, since):
    return UserNotification.objects.filter(
        reference_type=reference_type,
        reference_id=str(reference_id),
        created_at__gte=since,
    ).exists()


class _Counter:
    def __init__(self):
        self.records_checked = 0
        self.notifications_sent = 0
        self.errors = []

    def notify(self, label, **kwargs):
        try:
            create_notification(**kwargs)
        except Exception as exc:
            logger.warning("Cert expiry notification failed: %s", label, exc_info=True)
            self.errors.append(f"{label}: {exc}")
            return False
        self.notifications_sent += 1
        return True


def _check_preceptors(today, since, admin_emails, counter):
    preceptors = FieldPreceptor.objects.select_related("agency").filter(
        is_active=True,
        snhd_cert_expires__gte=today,
        snhd_cert_expires__lte=today + timedelta(days=LOOKAHEAD_DAYS),
    )
    for preceptor in preceptors:
        counter.records_checked += 1
        threshold = matching_threshold((preceptor.snhd_cert_expires - today).days)
        if threshold is None:
            continue

        expires = format_day(preceptor.snhd_cert_expires)
        name = preceptor.full_name
        agency = f" ({preceptor.agency})" if preceptor.agency_id else ""

        if preceptor.email and not was_notified_since(preceptor.email, REF_PRECEPTOR_REMINDER, since):
            counter.notify(
                f"Preceptor {name}",
                user_email=preceptor.email,
                title=f"SNHD Certification Expires in {threshold} Days",
                message=(
                    f"Your SNHD field preceptor certification expires in {plural_days(threshold)} "
                    f"on {expires}. Please renew your certification to continue as an active "
                    "field preceptor."
                ),
                type=UserNotification.TYPE_CERT_EXPIRY,
                category=UserNotification.CATEGORY_CLINICAL,
                link_url="/clinical/preceptors",
                reference_type=REF_PRECEPTOR_REMINDER,
            )

        if _admin_alerted(REF_PRECEPTOR_ADMIN, preceptor.pk, since):
            continue
        for admin_email in admin_emails:
            counter.notify(
                f"Admin {admin_email} preceptor alert",
                user_email=admin_email,
                title=f"Preceptor Cert Expiry: {name}",
                message=(
                    f"{name}{agency}'s SNHD field preceptor certification expires in "
                    f"{plural_days(threshold)} on {expires}."
                ),
                type=UserNotification.TYPE_CERT_EXPIRY,
                category=UserNotification.CATEGORY_CLINICAL,
                link_url="/clinical/preceptors",
                reference_type=REF_PRECEPTOR_ADMIN,
                reference_id=preceptor.pk,
            )


def _check_endorsements(today, since, admin_emails, counter):
    endorsements = Endorsement.objects.select_related("user").filter(
        is_active=True,
        expires_at__date__gte=today,
        expires_at__date__lte=today + timedelta(days=LOOKAHEAD_DAYS),
    )
    for endorsement in endorsements:
        counter.records_checked += 1
        expiry_day = timezone.localdate(endorsement.expires_at)
        threshold = matching_threshold((expiry_day - today).days)
        user = endorsement.user
        if threshold is None or not user.email:
            continue

        label = endorsement.title or endorsement.endorsement_type.replace("_", " ")
        expires = format_day(expiry_day)
        holder = user.get_full_name() or user.email

        if not was_notified_since(
            user.email, REF_ENDORSEMENT_REMINDER, since, reference_id=endorsement.pk
        ):
            counter.notify(
                f"Endorsement {user.email}",
                user_email=user.email,
                title=f"Endorsement Expires in {threshold} Days",
                message=(
                    f"Your {label} endorsement expires in {plural_days(threshold)} on "
                    f"{expires}. Please contact your program director to renew."
                ),
                type=UserNotification.TYPE_CERT_EXPIRY,
                category=UserNotification.CATEGORY_SYSTEM,
                link_url="/admin/users",
                reference_type=REF_ENDORSEMENT_REMINDER,
                reference_id=endorsement.pk,
            )

        if _admin_alerted(REF_ENDORSEMENT_ADMIN, endorsement.pk, since):
            continue
        for admin_email in admin_emails:
            counter.notify(
                f"Admin {admin_email} endorsement alert",
                user_email=admin_email,
                title=f"Instructor Endorsement Expiring: {holder}",
                message=f"{holder}'s {label} endorsement expires in {plural_days(threshold)} on {expires}.",
                type=UserNotification.TYPE_CERT_EXPIRY,
                category=UserNotification.CATEGORY_SYSTEM,
                link_url="/admin/users",
                reference_type=REF_ENDORSEMENT_ADMIN,
                reference_id=endorsement.pk,
            )


def run():
    today = timezone.localdate()
    since = timezone.now() - DEDUP_LOOKBACK
    admin_emails = list(users_with_min_role(ROLE_ADMIN).values_list("email", flat=True))
    counter = _Counter()

    _check_preceptors(today, since, admin_emails, counter)
    _check_endorsements(today, since, admin_emails, counter)

    return {
        "records_checked": counter.records_checked,
        "notifications_sent": counter.notifications_sent,
        "errors": counter.errors,
    }
