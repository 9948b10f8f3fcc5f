"""Mail delivery collaborator: sender interface, Resend sender, selection helper."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from automation_engine.core.config import settings
from automation_engine.core.errors import DeliveryFailed

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"


class MailSender(Protocol):
    key: str

    def send(
        self,
        to_email: str,
        subject: str,
        body: str,
        *,
        idempotency_key: str | None = None,
    ) -> None:
        """Deliver one message. Raises DeliveryFailed on any downstream failure."""


class ResendMailSender:
    """Sends plain-text mail through the Resend HTTP API."""

    key = "resend"

    def __init__(
        self,
        api_key: str,
        from_email: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.from_email = from_email
        self.timeout = timeout
        self.transport = transport

    def send(
        self,
        to_email: str,
        subject: str,
        body: str,
        *,
        idempotency_key: str | None = None,
    ) -> None:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        payload = {
            "from": self.from_email,
            "to": [to_email],
            "subject": subject,
            "text": body,
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(RESEND_SEND_URL, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise DeliveryFailed(f"Resend request failed: {type(e).__name__}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("message", response.text)
            except ValueError:
                detail = response.text
            raise DeliveryFailed(f"Resend error {response.status_code}: {detail[:200]}")


class LogMailSender:
    """Development sender: logs instead of delivering."""

    key = "log"

    def send(
        self,
        to_email: str,
        subject: str,
        body: str,
        *,
        idempotency_key: str | None = None,
    ) -> None:
        logger.info(
            "[DRY RUN] Would send mail subject=%r idempotency_key=%s",
            subject,
            idempotency_key,
        )


def get_mail_sender() -> MailSender:
    """Resend when an API key is configured, otherwise the logging sender."""
    if settings.RESEND_API_KEY:
        return ResendMailSender(
            api_key=settings.RESEND_API_KEY,
            from_email=settings.EMAIL_FROM,
            timeout=settings.MAIL_TIMEOUT_SECONDS,
        )
    return LogMailSender()
