"""
Email helpers for the core app.

Handles the templated email plumbing shared by every app, plus the
notification sent to admins when someone new signs up.
"""
import logging
from threading import Thread

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

from core.permissions import ROLE_ADMIN, users_with_min_role

logger = logging.getLogger(__name__)


def _base_context():
    return {
        "app_name": getattr(settings, "APP_NAME", "PMI Tools"),
        "institution": settings.PROGRAM.get("INSTITUTION"),
        "app_url": settings.PROGRAM.get("APP_URL"),
    }


def send_templated_email(*, to, subject, template, context=None):
    """
    Render ``emails/<template>.txt`` and ``.html`` and send them.

    ``to`` may be a single address or a list. Raises on delivery failure.
    """
    recipients = [to] if isinstance(to, str) else list(to)
    full_context = {**_base_context(), **(context or {})}

    text_body = render_to_string(f"emails/{template}.txt", full_context)
    html_body = render_to_string(f"emails/{template}.html", full_context)

    msg = EmailMultiAlternatives(
        subject=subject,
        body=text_body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=recipients,
    )
    msg.attach_alternative(html_body, "text/html")
    return msg.send(fail_silently=False)


def _get_user_manager_emails():
    """Return emails of all active admins and superadmins."""
    return list(users_with_min_role(ROLE_ADMIN).values_list("email", flat=True))


def send_new_pending_user_email(*, new_user, users_url=None):
    """
    Send HTML + text email when a new user signs up.

    Recipients: all admins and superadmins.
    """
    recipients = _get_user_manager_emails()

    if not recipients:
        logger.info("send_new_pending_user_email: no recipients, skipping.")
        return

    app_name = getattr(settings, "APP_NAME", "PMI Tools")
    send_templated_email(
        to=recipients,
        subject=f"{app_name}: New user awaiting role assignment",
        template="new_pending_user",
        context={"new_user": new_user, "users_url": users_url},
    )


def send_new_pending_user_email_async(new_user, users_url=None):
    """
    Fire-and-forget wrapper: send the email on a background thread so the
    HTTP request isn't blocked by email API latency.
    """

    def _worker():
        try:
            send_new_pending_user_email(new_user=new_user, users_url=users_url)
        except Exception:
            logger.warning(
                "send_new_pending_user_email_async: error sending email "
                "for new user %s",
                new_user.email or new_user.username,
                exc_info=True,
            )

    Thread(target=_worker, daemon=True).start()
