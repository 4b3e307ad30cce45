"""Concurrent bulk send with aggregate sent/failed/skipped counts."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Iterable
from uuid import UUID

from backoffice_engine.exceptions import ValidationError
from backoffice_engine.sms.phone import normalize_phone
from backoffice_engine.sms.providers import SmsProvider, SmsSendResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    phone: str | None
    family_id: UUID | None = None
    opted_out: bool = False


@dataclass(frozen=True)
class RecipientResult:
    """Outcome for one eligible recipient."""

    recipient: Recipient
    result: SmsSendResult

    @property
    def success(self) -> bool:
        return self.result.success


@dataclass
class BulkSendResult:
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[RecipientResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.sent > 0


def partition_recipients(
    recipients: Iterable[Recipient],
) -> tuple[list[Recipient], list[Recipient]]:
    """Split into (eligible, skipped).

    Eligible recipients have a valid US number (returned normalized) and
    have not opted out. Duplicate numbers are sent once.
    """
    eligible: list[Recipient] = []
    skipped: list[Recipient] = []
    seen: set[str] = set()
    for recipient in recipients:
        phone = normalize_phone(recipient.phone)
        if phone is None or recipient.opted_out or phone in seen:
            skipped.append(recipient)
            continue
        seen.add(phone)
        eligible.append(replace(recipient, phone=phone))
    return eligible, skipped


async def send_bulk(
    provider: SmsProvider,
    body: str,
    recipients: Iterable[Recipient],
    media_urls: list[str] | None = None,
) -> BulkSendResult:
    """Send ``body`` to every eligible recipient concurrently.

    Counts are reported once every send has settled; one failing send
    never stops the others.
    """
    if not body or not body.strip():
        raise ValidationError("Message body is required")

    eligible, skipped = partition_recipients(recipients)
    outcomes = await asyncio.gather(
        *(provider.send(r.phone, body, media_urls) for r in eligible),
        return_exceptions=True,
    )

    result = BulkSendResult(skipped=len(skipped))
    for recipient, outcome in zip(eligible, outcomes):
        if isinstance(outcome, BaseException):
            logger.error("SMS to %s raised %r", recipient.phone, outcome)
            outcome = SmsSendResult(
                success=False,
                status="failed",
                error_message=str(outcome) or type(outcome).__name__,
            )
        if outcome.success:
            result.sent += 1
        else:
            result.failed += 1
        result.results.append(RecipientResult(recipient=recipient, result=outcome))

    logger.info(
        "SMS send complete: %d sent, %d failed, %d skipped",
        result.sent,
        result.failed,
        result.skipped,
    )
    return result
