"""SMS provider adapters.

All providers implement the SmsProvider protocol. ``send`` returns a
failed SmsSendResult when the provider rejects a message and raises
only for transport problems (timeouts, connection errors).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import uuid4

import httpx

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


def map_provider_status(status: str | None) -> str:
    """Map a carrier status onto the statuses stored on SmsMessage."""
    if status in ("delivered", "undelivered", "failed"):
        return status
    # queued, sending, sent and anything unknown
    return "sent"


@dataclass(frozen=True)
class SmsSendResult:
    """Result of handing one message to a provider."""

    success: bool
    status: str
    provider_sid: str | None = None
    error_code: str | None = None
    error_message: str | None = None


class SmsProvider(Protocol):
    """Protocol for SMS/MMS provider adapters."""

    from_phone: str

    async def send(
        self,
        to: str,
        body: str,
        media_urls: list[str] | None = None,
    ) -> SmsSendResult:
        """Send one message to an E.164 number."""
        ...


class TwilioSmsProvider:
    """Twilio Messages API (form-encoded POST with Basic auth)."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_phone: str,
        status_callback_url: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_phone = from_phone
        self.status_callback_url = status_callback_url
        self.timeout = timeout
        self._transport = transport

    @property
    def messages_url(self) -> str:
        return f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"

    def build_form(self, to: str, body: str, media_urls: list[str] | None = None) -> dict[str, Any]:
        form: dict[str, Any] = {"To": to, "From": self.from_phone, "Body": body}
        if self.status_callback_url:
            form["StatusCallback"] = self.status_callback_url
        if media_urls:
            # repeated MediaUrl fields
            form["MediaUrl"] = list(media_urls)
        return form

    async def send(
        self,
        to: str,
        body: str,
        media_urls: list[str] | None = None,
    ) -> SmsSendResult:
        async with httpx.AsyncClient(
            auth=(self.account_sid, self.auth_token),
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            response = await client.post(
                self.messages_url,
                data=self.build_form(to, body, media_urls),
            )

        payload = self._json(response)
        if response.is_error:
            logger.error("Twilio rejected message to %s: %s", to, payload)
            code = payload.get("code")
            return SmsSendResult(
                success=False,
                status="failed",
                error_code=str(code) if code is not None else str(response.status_code),
                error_message=payload.get("message") or "Twilio API error",
            )

        return SmsSendResult(
            success=True,
            status=map_provider_status(payload.get("status")),
            provider_sid=payload.get("sid"),
        )

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}


@dataclass
class SentMessage:
    to: str
    body: str
    media_urls: list[str] = field(default_factory=list)


class StubSmsProvider:
    """In-memory provider for development and tests.

    Numbers in ``fail_numbers`` get a failed result; numbers in
    ``raise_numbers`` raise ConnectionError, as a dropped connection would.
    """

    def __init__(
        self,
        from_phone: str = "+15005550006",
        fail_numbers: set[str] | None = None,
        raise_numbers: set[str] | None = None,
    ):
        self.from_phone = from_phone
        self.fail_numbers = set(fail_numbers or ())
        self.raise_numbers = set(raise_numbers or ())
        self.sent: list[SentMessage] = []

    async def send(
        self,
        to: str,
        body: str,
        media_urls: list[str] | None = None,
    ) -> SmsSendResult:
        if to in self.raise_numbers:
            raise ConnectionError(f"Connection to provider lost while sending to {to}")
        if to in self.fail_numbers:
            return SmsSendResult(
                success=False,
                status="failed",
                error_code="30003",
                error_message="Unreachable destination handset",
            )

        self.sent.append(SentMessage(to=to, body=body, media_urls=list(media_urls or [])))
        return SmsSendResult(success=True, status="sent", provider_sid=f"SM{uuid4().hex}")
