"""Outbound SMS/MMS log."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backoffice_engine.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class SmsMessage(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """One send attempt to one phone number.

    Status after the initial send is updated by the carrier's status
    webhook, not by this package.
    """

    __tablename__ = "sms_messages"

    family_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("families.id", ondelete="SET NULL"),
        nullable=True,
    )
    invoice_id: Mapped[UUID | None] = mapped_column(nullable=True)
    to_phone: Mapped[str] = mapped_column(String, nullable=False)
    from_phone: Mapped[str | None] = mapped_column(String, nullable=True)
    message_body: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(String, nullable=False, default="custom")
    template_key: Mapped[str | None] = mapped_column(String, nullable=True)
    merge_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    campaign_name: Mapped[str | None] = mapped_column(String, nullable=True)
    media_urls: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    segments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    provider_sid: Mapped[str | None] = mapped_column(String, nullable=True)
    error_code: Mapped[str | None] = mapped_column(String, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    sent_by: Mapped[str] = mapped_column(String, nullable=False, default="system")
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'sent', 'delivered', 'failed', 'undelivered')",
            name="sms_messages_status_check",
        ),
        CheckConstraint(
            "message_type IN ('invoice_reminder', 'event_reminder', 'announcement', 'custom', 'bulk')",
            name="sms_messages_type_check",
        ),
    )
