"""
Email delivery through the Resend HTTP API.

ResendEmailBackend plugs into Django's mail framework (settings.EMAIL_BACKEND),
so everything that sends email through django.core.mail goes out this way.
"""
import logging

import requests
from django.conf import settings
from django.core.mail.backends.base import BaseEmailBackend

logger = logging.getLogger(__name__)


class ResendClient:
    """Tiny helper for the Resend send-email endpoint."""

    def __init__(self, api_key=None, api_url=None, timeout=None):
        cfg = getattr(settings, "RESEND", {})
        self.api_key = api_key or cfg.get("API_KEY", "")
        self.api_url = api_url or cfg.get("API_URL", "https://api.resend.com/emails")
        self.timeout = timeout or cfg.get("TIMEOUT_SECONDS", 15)

    def _headers(self):
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def send_email(self, payload):
        """POST one email; returns Resend's response body ({"id": ...})."""
        r = requests.post(self.api_url, json=payload, headers=self._headers(), timeout=self.timeout)
        r.raise_for_status()
        return r.json()


def message_payload(message):
    """Resend JSON body for a Django EmailMessage (HTML alternative included)."""
    payload = {
        "from": message.from_email or settings.DEFAULT_FROM_EMAIL,
        "to": list(message.to),
        "subject": message.subject,
    }
    if message.body:
        if getattr(message, "content_subtype", "plain") == "html":
            payload["html"] = message.body
        else:
            payload["text"] = message.body
    for content, mimetype in getattr(message, "alternatives", []) or []:
        if mimetype == "text/html":
            payload["html"] = content
    if message.cc:
        payload["cc"] = list(message.cc)
    if message.bcc:
        payload["bcc"] = list(message.bcc)
    if message.reply_to:
        payload["reply_to"] = list(message.reply_to)
    if message.extra_headers:
        payload["headers"] = dict(message.extra_headers)
    return payload


class ResendEmailBackend(BaseEmailBackend):
    def __init__(self, fail_silently=False, **kwargs):
        super().__init__(fail_silently=fail_silently, **kwargs)
        self.client = ResendClient()

    def send_messages(self, email_messages):
        if not email_messages:
            return 0
        sent = 0
        for message in email_messages:
            if not message.recipients():
                continue
            try:
                self.client.send_email(message_payload(message))
            except requests.RequestException:
                logger.warning(
                    "Resend delivery failed for %s: %s",
                    ", ".join(message.to),
                    message.subject,
                    exc_info=True,
                )
                if not self.fail_silently:
                    raise
                continue
            sent += 1
        return sent
