"""Tests for SMS providers, bulk sends and the SMS service."""

from __future__ import annotations

from urllib.parse import parse_qsl
from uuid import uuid4

import httpx
import pytest
from sqlalchemy import select

from backoffice_engine.exceptions import NotFoundError, ValidationError
from backoffice_engine.models import Family, SmsMessage
from backoffice_engine.sms.bulk import Recipient, partition_recipients, send_bulk
from backoffice_engine.sms.providers import StubSmsProvider, TwilioSmsProvider, map_provider_status
from backoffice_engine.sms.service import SmsService

from tests.conftest import PayrollData


class TestPartitionRecipients:
    def test_skips_invalid_opted_out_and_duplicates(self):
        eligible, skipped = partition_recipients(
            [
                Recipient("(555) 234-5678"),
                Recipient("555-234-5678"),  # same number
                Recipient("12"),
                Recipient(None),
                Recipient("555-987-6543", opted_out=True),
            ]
        )

        assert [r.phone for r in eligible] == ["+15552345678"]
        assert len(skipped) == 4


class TestSendBulk:
    """Test aggregate counts."""

    async def test_sent_failed_skipped(self):
        provider = StubSmsProvider(fail_numbers={"+15553334444"})
        recipients = [
            Recipient("555-222-1111"),
            Recipient("555-333-4444"),
            Recipient("555-444-5555", opted_out=True),
        ]

        result = await send_bulk(provider, "Hello", recipients)

        assert (result.sent, result.failed, result.skipped) == (1, 1, 1)
        assert result.success is True
        assert [m.to for m in provider.sent] == ["+15552221111"]
        failed = [r for r in result.results if not r.success][0]
        assert failed.result.error_code == "30003"

    async def test_exceptions_count_as_failures(self):
        provider = StubSmsProvider(raise_numbers={"+15552221111"})

        result = await send_bulk(provider, "Hello", [Recipient("555-222-1111"), Recipient("555-333-4444")])

        assert (result.sent, result.failed, result.skipped) == (1, 1, 0)
        failed = [r for r in result.results if not r.success][0]
        assert "Connection to provider lost" in failed.result.error_message

    async def test_nothing_sent_is_not_success(self):
        result = await send_bulk(StubSmsProvider(), "Hello", [Recipient("bad")])

        assert result.success is False
        assert result.skipped == 1

    async def test_blank_body_rejected(self):
        with pytest.raises(ValidationError):
            await send_bulk(StubSmsProvider(), "   ", [Recipient("555-222-1111")])


class TestTwilioSmsProvider:
    """Test the Twilio adapter against a mock transport."""

    async def test_successful_send(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(201, json={"sid": "SM123", "status": "queued"})

        provider = TwilioSmsProvider(
            "AC1",
            "secret",
            "+15550001111",
            status_callback_url="https://example.com/sms/status",
            transport=httpx.MockTransport(handler),
        )

        result = await provider.send("+15552221111", "Hi", media_urls=["https://example.com/a.png"])

        assert result.success
        assert result.status == "sent"
        assert result.provider_sid == "SM123"

        request = captured[0]
        assert str(request.url) == "https://api.twilio.com/2010-04-01/Accounts/AC1/Messages.json"
        assert request.headers["authorization"].startswith("Basic ")
        form = parse_qsl(request.content.decode())
        assert ("To", "+15552221111") in form
        assert ("From", "+15550001111") in form
        assert ("StatusCallback", "https://example.com/sms/status") in form
        assert ("MediaUrl", "https://example.com/a.png") in form

    async def test_rejected_send(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

        provider = TwilioSmsProvider("AC1", "secret", "+15550001111", transport=httpx.MockTransport(handler))

        result = await provider.send("+15552221111", "Hi")

        assert not result.success
        assert result.status == "failed"
        assert result.error_code == "21211"
        assert result.error_message == "Invalid 'To' Phone Number"

    def test_map_provider_status(self):
        assert map_provider_status("delivered") == "delivered"
        assert map_provider_status("queued") == "sent"
        assert map_provider_status(None) == "sent"


class TestSmsService:
    """Test sends to families and the message log."""

    async def test_send_to_families_records_messages(self, session, payroll_data: PayrollData):
        opted_out = Family(display_name="Quiet Family", primary_phone="555-777-8888", sms_opt_out=True)
        session.add(opted_out)
        await session.commit()
        provider = StubSmsProvider()

        result = await SmsService(session, provider).send_to_families(
            [payroll_data.smith_family_id, opted_out.id],
            "No classes Monday",
            message_type="announcement",
            campaign_name="Holiday",
            sent_by="office@example.com",
        )

        assert (result.sent, result.failed, result.skipped) == (1, 0, 1)
        rows = (await session.execute(select(SmsMessage))).scalars().all()
        assert len(rows) == 1
        row = rows[0]
        assert row.family_id == payroll_data.smith_family_id
        assert row.to_phone == "+15552345678"
        assert row.from_phone == provider.from_phone
        assert row.status == "sent"
        assert row.segments == 1
        assert row.campaign_name == "Holiday"
        assert row.sent_at is not None
        assert row.failed_at is None

    async def test_failed_sends_are_recorded(self, session, payroll_data: PayrollData):
        provider = StubSmsProvider(fail_numbers={"+15552345678"})

        result = await SmsService(session, provider).send_to_families([payroll_data.smith_family_id], "Hi")

        assert result.failed == 1
        row = (await session.execute(select(SmsMessage))).scalar_one()
        assert row.status == "failed"
        assert row.error_code == "30003"
        assert row.failed_at is not None

    async def test_unknown_families(self, session, payroll_data: PayrollData):
        with pytest.raises(NotFoundError):
            await SmsService(session, StubSmsProvider()).send_to_families([uuid4()], "Hi")

    async def test_unknown_message_type(self, session, payroll_data: PayrollData):
        with pytest.raises(ValidationError):
            await SmsService(session, StubSmsProvider()).send_to_families(
                [payroll_data.smith_family_id], "Hi", message_type="spam"
            )

    async def test_send_to_phone(self, session):
        provider = StubSmsProvider()

        result = await SmsService(session, provider).send_to_phone("555-222-1111", "Test")

        assert result.sent == 1
        row = (await session.execute(select(SmsMessage))).scalar_one()
        assert row.family_id is None
        assert row.message_type == "custom"

    async def test_send_template_to_phone_records_template(self, session):
        merge_data = {"customMessage": "School closed Friday."}

        await SmsService(session, StubSmsProvider()).send_to_phone(
            "555-222-1111",
            "School closed Friday.",
            message_type="announcement",
            template_key="announcement",
            merge_data=merge_data,
            campaign_name="Snow day",
        )

        row = (await session.execute(select(SmsMessage))).scalar_one()
        assert row.template_key == "announcement"
        assert row.merge_data == merge_data
        assert row.campaign_name == "Snow day"

    async def test_send_to_invalid_phone(self, session):
        with pytest.raises(ValidationError):
            await SmsService(session, StubSmsProvider()).send_to_phone("123", "Test")
