"""
Creating notifications and sending notification email.

Everything that tells a user something goes through here: request handlers
after a successful write, and the scheduled jobs in ``system.jobs``.
"""
import logging

from django.contrib.auth import get_user_model
from django.utils import timezone

from core.emails import send_templated_email
from core.permissions import ROLE_ADMIN, users_with_min_role
from notifications.models import EmailLog, NotificationPreference, UserNotification

logger = logging.getLogger(__name__)

User = get_user_model()


def create_notification(
    user_email,
    title,
    message="",
    *,
    type=UserNotification.TYPE_GENERAL,
    category=UserNotification.CATEGORY_SYSTEM,
    link_url="",
    reference_type="",
    reference_id="",
    send_email=False,
):
    """Create one in-app notification, optionally emailing it as well."""
    notification = UserNotification.objects.create(
        user_email=user_email.lower(),
        title=title,
        message=message,
        type=type,
        category=category,
        link_url=link_url or "",
        reference_type=reference_type or "",
        reference_id=str(reference_id) if reference_id is not None else "",
    )
    if send_email:
        send_notification_email(notification)
    return notification


def create_bulk_notifications(user_emails, title, message="", **kwargs):
    """Create the same notification for several people. Returns the rows created."""
    send_email = kwargs.pop("send_email", False)
    reference_id = kwargs.pop("reference_id", "")
    emails = sorted({e.lower() for e in user_emails if e})
    rows = UserNotification.objects.bulk_create(
        [
            UserNotification(
                user_email=email,
                title=title,
                message=message,
                reference_id=str(reference_id) if reference_id is not None else "",
                **kwargs,
            )
            for email in emails
        ]
    )
    if send_email:
        for notification in rows:
            send_notification_email(notification)
    return rows


def notify_admins(title, message="", *, exclude_email=None, **kwargs):
    """Notify every admin and superadmin. Returns the number notified."""
    emails = [
        email
        for email in users_with_min_role(ROLE_ADMIN).values_list("email", flat=True)
        if email.lower() != (exclude_email or "").lower()
    ]
    return len(create_bulk_notifications(emails, title, message, **kwargs))


def notify_safely(func, *args, **kwargs):
    """
    Run a notification call without letting its failure break the caller.

    Used after a write has already succeeded: the write stands even if the
    notification can't be created.
    """
    try:
        return func(*args, **kwargs)
    except Exception:
        logger.warning("Notification %s failed", func.__name__, exc_info=True)
        return None


def was_notified_since(user_email, reference_type, since, reference_id=None):
    """Has ``user_email`` been sent a ``reference_type`` notification since ``since``?"""
    qs = UserNotification.objects.filter(
        user_email=user_email.lower(),
        reference_type=reference_type,
    )
    if since is not None:
        qs = qs.filter(created_at__gte=since)
    if reference_id is not None:
        qs = qs.filter(reference_id=str(reference_id))
    return qs.exists()


def _email_allowed(user_email, category):
    pref = (
        NotificationPreference.objects.filter(user__email__iexact=user_email)
        .only("email_enabled", "muted_categories")
        .first()
    )
    return pref is None or pref.wants_email(category)


def send_email_logged(*, to, subject, template, context, category=None):
    """
    Send a templated email and record the attempt in EmailLog.

    Honours the recipient's notification preferences. Returns True when sent.
    """
    if category and not _email_allowed(to, category):
        EmailLog.objects.create(
            to_email=to, subject=subject, template=template, status=EmailLog.STATUS_SKIPPED
        )
        return False
    try:
        send_templated_email(to=to, subject=subject, template=template, context=context)
    except Exception as exc:
        logger.warning("Email to %s failed: %s", to, subject, exc_info=True)
        EmailLog.objects.create(
            to_email=to,
            subject=subject,
            template=template,
            status=EmailLog.STATUS_FAILED,
            error=str(exc)[:2000],
        )
        return False
    EmailLog.objects.create(
        to_email=to, subject=subject, template=template, status=EmailLog.STATUS_SENT
    )
    return True


def send_notification_email(notification):
    return send_email_logged(
        to=notification.user_email,
        subject=notification.title,
        template="notification",
        context={"notification": notification},
        category=notification.category,
    )


def mark_read(user_email, notification_id=None):
    """Mark one (or all) of a user's notifications read. Returns rows updated."""
    qs = UserNotification.objects.filter(user_email=user_email.lower(), is_read=False)
    if notification_id is not None:
        qs = qs.filter(pk=notification_id)
    return qs.update(is_read=True, read_at=timezone.now())
