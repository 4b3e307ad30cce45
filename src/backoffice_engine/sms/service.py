"""Sending to families and logging every attempt."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice_engine.exceptions import NotFoundError, ValidationError
from backoffice_engine.models import Family, SmsMessage
from backoffice_engine.sms.bulk import BulkSendResult, Recipient, RecipientResult, send_bulk
from backoffice_engine.sms.providers import SmsProvider
from backoffice_engine.sms.segments import calculate_segments

logger = logging.getLogger(__name__)

MESSAGE_TYPES = ("invoice_reminder", "event_reminder", "announcement", "custom", "bulk")


class SmsService:
    """Sends SMS/MMS to families through a provider and records SmsMessage rows."""

    def __init__(self, session: AsyncSession, provider: SmsProvider):
        self.session = session
        self.provider = provider

    async def send_to_families(
        self,
        family_ids: Iterable[UUID],
        body: str,
        message_type: str = "bulk",
        template_key: str | None = None,
        merge_data: dict[str, Any] | None = None,
        campaign_name: str | None = None,
        media_urls: list[str] | None = None,
        invoice_id: UUID | None = None,
        sent_by: str = "system",
    ) -> BulkSendResult:
        """Send one body to each family's primary phone.

        Opted-out families and families without a valid number are
        skipped. Raises NotFoundError if none of the ids exist.
        """
        if message_type not in MESSAGE_TYPES:
            raise ValidationError(f"Unknown message type: {message_type!r}")
        family_ids = list(dict.fromkeys(family_ids))
        if not family_ids:
            raise ValidationError("At least one family is required")

        result = await self.session.execute(select(Family).where(Family.id.in_(family_ids)))
        families = list(result.scalars().all())
        if not families:
            raise NotFoundError("Family", ", ".join(str(i) for i in family_ids))

        recipients = [
            Recipient(phone=f.primary_phone, family_id=f.id, opted_out=f.sms_opt_out)
            for f in families
        ]
        outcome = await send_bulk(self.provider, body, recipients, media_urls)

        self._record(
            outcome.results,
            body=body,
            message_type=message_type,
            template_key=template_key,
            merge_data=merge_data,
            campaign_name=campaign_name,
            media_urls=media_urls,
            invoice_id=invoice_id,
            sent_by=sent_by,
        )
        await self.session.commit()
        return outcome

    async def send_to_phone(
        self,
        to_phone: str,
        body: str,
        message_type: str = "custom",
        template_key: str | None = None,
        merge_data: dict[str, Any] | None = None,
        campaign_name: str | None = None,
        media_urls: list[str] | None = None,
        sent_by: str = "system",
    ) -> BulkSendResult:
        """Send to a number that is not tied to a family."""
        if message_type not in MESSAGE_TYPES:
            raise ValidationError(f"Unknown message type: {message_type!r}")
        outcome = await send_bulk(self.provider, body, [Recipient(phone=to_phone)], media_urls)
        if outcome.skipped:
            raise ValidationError("Invalid phone number format")

        self._record(
            outcome.results,
            body=body,
            message_type=message_type,
            template_key=template_key,
            merge_data=merge_data,
            campaign_name=campaign_name,
            media_urls=media_urls,
            sent_by=sent_by,
        )
        await self.session.commit()
        return outcome

    def _record(
        self,
        results: list[RecipientResult],
        body: str,
        message_type: str,
        template_key: str | None = None,
        merge_data: dict[str, Any] | None = None,
        campaign_name: str | None = None,
        media_urls: list[str] | None = None,
        invoice_id: UUID | None = None,
        sent_by: str = "system",
    ) -> None:
        segments = calculate_segments(body)
        now = datetime.now(timezone.utc)
        for item in results:
            send_result = item.result
            self.session.add(
                SmsMessage(
                    family_id=item.recipient.family_id,
                    invoice_id=invoice_id,
                    to_phone=item.recipient.phone,
                    from_phone=self.provider.from_phone,
                    message_body=body,
                    message_type=message_type,
                    template_key=template_key,
                    merge_data=merge_data,
                    campaign_name=campaign_name,
                    media_urls=media_urls or None,
                    segments=segments,
                    status=send_result.status,
                    provider_sid=send_result.provider_sid,
                    error_code=send_result.error_code,
                    error_message=send_result.error_message,
                    sent_by=sent_by,
                    sent_at=now if send_result.success else None,
                    failed_at=None if send_result.success else now,
                )
            )
        logger.info("Recorded %d SMS message(s) of type %s", len(results), message_type)
