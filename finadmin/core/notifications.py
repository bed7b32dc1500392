"""Delivery of admin OTP codes.

The engine awaits ``send`` inline: a challenge is only reported to the caller
once its code has been handed to the delivery channel, and a delivery failure
fails the operation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from finadmin.config import Settings
from finadmin.utils.exceptions import ConfigurationException, NotificationDeliveryException
from finadmin.utils.observability import format_event
from finadmin.utils.security import hash_identity, mask_email

logger = logging.getLogger(__name__)


class NotificationGateway(Protocol):
    async def send(self, identity: str, code: str) -> None:
        """Deliver ``code`` to ``identity`` or raise NotificationDeliveryException."""
        ...


def render_otp_email(code: str) -> str:
    return f"""
    <div style="font-family:Arial,sans-serif;max-width:560px;margin:auto;padding:24px">
      <h2 style="margin:0 0 12px 0;">Admin sign-in verification</h2>
      <p style="margin:0 0 16px 0;color:#444;line-height:1.5;">
        Use the code below to finish signing in to the admin console.
      </p>
      <p style="font-size:28px;font-weight:700;letter-spacing:6px;margin:0 0 16px 0;">{code}</p>
      <p style="margin:18px 0 0 0;color:#666;font-size:12px;">
        If you did not try to sign in, change your password immediately.
      </p>
    </div>
    """


class EmailOtpGateway:
    """Sends codes through a transactional e-mail HTTP API."""

    subject = "Your admin verification code"

    def __init__(
        self,
        *,
        api_url: str,
        api_key: str,
        from_email: str,
        from_name: str,
        timeout_seconds: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._from_email = from_email
        self._from_name = from_name
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def send(self, identity: str, code: str) -> None:
        if not self._api_key:
            raise ConfigurationException("EMAIL_API_KEY not configured")

        payload = {
            "sender": {"name": self._from_name, "email": self._from_email},
            "to": [{"email": identity}],
            "subject": self.subject,
            "htmlContent": render_otp_email(code),
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport) as client:
                r = await client.post(
                    self._api_url,
                    headers={"api-key": self._api_key, "Content-Type": "application/json"},
                    json=payload,
                )
        except httpx.HTTPError as exc:
            logger.warning(
                format_event("notify.otp_email_failed", identity_hash=hash_identity(identity), error=type(exc).__name__)
            )
            raise NotificationDeliveryException() from exc

        if r.status_code >= 400:
            logger.warning(
                format_event("notify.otp_email_rejected", identity_hash=hash_identity(identity), status=r.status_code)
            )
            raise NotificationDeliveryException(details={"provider_status": r.status_code})

        logger.info(format_event("notify.otp_email_sent", masked=mask_email(identity)))


@dataclass(frozen=True)
class OutboxMessage:
    identity: str
    code: str


class OutboxOtpGateway:
    """In-process outbox for dev and tests.

    Codes are kept in memory for the operator to read back and are never logged.
    """

    def __init__(self, *, max_messages: int = 100) -> None:
        self._messages: list[OutboxMessage] = []
        self._max_messages = max_messages
        self._lock = asyncio.Lock()

    async def send(self, identity: str, code: str) -> None:
        async with self._lock:
            self._messages.append(OutboxMessage(identity=identity, code=code))
            if len(self._messages) > self._max_messages:
                del self._messages[: len(self._messages) - self._max_messages]
        logger.info(format_event("notify.otp_outbox_queued", masked=mask_email(identity)))

    @property
    def messages(self) -> list[OutboxMessage]:
        return list(self._messages)

    def last_code_for(self, identity: str) -> Optional[str]:
        for message in reversed(self._messages):
            if message.identity == identity:
                return message.code
        return None

    def clear(self) -> None:
        self._messages.clear()


def build_notification_gateway(s: Settings) -> NotificationGateway:
    mode = (s.OTP_DELIVERY or "outbox").strip().lower()
    if mode == "email":
        return EmailOtpGateway(
            api_url=s.EMAIL_API_URL,
            api_key=s.EMAIL_API_KEY,
            from_email=s.EMAIL_FROM,
            from_name=s.EMAIL_FROM_NAME,
            timeout_seconds=s.EMAIL_TIMEOUT_SECONDS,
        )
    if mode == "outbox":
        return OutboxOtpGateway()
    raise RuntimeError(f"Unknown OTP_DELIVERY mode: {s.OTP_DELIVERY!r} (expected 'email' or 'outbox')")
