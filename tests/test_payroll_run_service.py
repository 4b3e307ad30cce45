"""Tests for the payroll run service against an in-memory database."""

from __future__ import annotations

import json
from decimal import Decimal
from uuid import uuid4

import httpx
import pytest
from sqlalchemy import select

from backoffice_engine.exceptions import (
    NotFoundError,
    RunNotEditableError,
    StaleRunError,
    ValidationError,
)
from backoffice_engine.models import PayrollAdjustment, PayrollRun, Teacher
from backoffice_engine.services.notifications import PaymentNotificationDispatcher
from backoffice_engine.services.notifier import CollectingNotifier
from backoffice_engine.services.payroll_run_service import PayrollRunService
from backoffice_engine.services.state_machine import InvalidTransitionError

from tests.conftest import PERIOD_END, PERIOD_START, PayrollData


def lines_by_teacher(run: PayrollRun) -> dict:
    return {line.teacher_id: line for line in run.line_items if not line.is_manual}


@pytest.fixture
def webhook_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def dispatcher(webhook_requests) -> PaymentNotificationDispatcher:
    def handler(request: httpx.Request) -> httpx.Response:
        webhook_requests.append(request)
        return httpx.Response(200, json={"ok": True})

    return PaymentNotificationDispatcher(
        "https://hooks.example.com/payroll", transport=httpx.MockTransport(handler)
    )


@pytest.fixture
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture
def service(session, dispatcher, notifier) -> PayrollRunService:
    return PayrollRunService(session, dispatcher=dispatcher, notifier=notifier)


async def create_review_run(service: PayrollRunService) -> PayrollRun:
    result = await service.create_run(PERIOD_START, PERIOD_END)
    return await service.transition_status(result.run.id, "review")


class TestCreateRun:
    """Test generating a draft run from the seeded assignments."""

    async def test_lines_and_totals(self, service: PayrollRunService, payroll_data: PayrollData):
        result = await service.create_run(PERIOD_START, PERIOD_END)
        run = result.run

        assert run.status == "draft"
        assert run.version == 1
        assert len(run.line_items) == 3  # inactive assignment skipped
        assert run.total_hours == Decimal("16.00")
        assert run.total_calculated == Decimal("650.00")
        assert run.total_adjusted == Decimal("650.00")
        assert run.teacher_count == 3
        assert result.warnings == []

        lines = lines_by_teacher(run)
        alice = lines[payroll_data.alice_id]
        assert alice.description == "Sam Smith - Tutoring"
        assert alice.rate_source == "assignment"
        assert alice.hourly_rate == Decimal("50.00")
        assert alice.final_amount == Decimal("500.00")
        assert alice.teacher_assignment_id == payroll_data.alice_assignment_id

        bob = lines[payroll_data.bob_id]
        assert bob.description == "Jo Smith - Learning Pod"
        assert bob.rate_source == "teacher"
        assert bob.actual_hours == Decimal("6.00")

        carol = lines[payroll_data.carol_id]
        assert carol.description == "Tutoring"
        assert carol.rate_source == "service"
        assert carol.is_variable_hours
        assert carol.final_amount == Decimal("0.00")

    async def test_default_period(self, service: PayrollRunService, payroll_data: PayrollData):
        result = await service.create_run()

        assert (result.run.period_end - result.run.period_start).days == 13
        assert result.run.period_start.weekday() == 0

    async def test_one_bound_only(self, service: PayrollRunService, payroll_data: PayrollData):
        with pytest.raises(ValidationError):
            await service.create_run(PERIOD_START, None)

    async def test_pending_adjustments_applied_to_first_line(
        self, session, service: PayrollRunService, payroll_data: PayrollData, notifier
    ):
        dave = Teacher(display_name="Dave Doe", email="dave@example.com")
        session.add(dave)
        await session.commit()

        applied = await service.create_adjustment(payroll_data.alice_id, Decimal("25"), "Missed session")
        unapplied = await service.create_adjustment(dave.id, Decimal("-10"), "Overpaid")

        result = await service.create_run(PERIOD_START, PERIOD_END)
        alice = lines_by_teacher(result.run)[payroll_data.alice_id]

        assert result.applied_adjustments == 1
        assert alice.adjustment_amount == Decimal("25.00")
        assert alice.final_amount == Decimal("525.00")
        assert "Missed session" in alice.adjustment_note
        assert result.run.total_adjusted == Decimal("675.00")
        assert len(result.warnings) == 1
        assert "Dave Doe" in result.warnings[0]
        assert notifier.errors == result.warnings

        await session.refresh(applied)
        await session.refresh(unapplied)
        assert applied.target_payroll_run_id == result.run.id
        assert unapplied.target_payroll_run_id is None

    async def test_create_adjustment_validation(self, service: PayrollRunService, payroll_data: PayrollData):
        with pytest.raises(ValidationError):
            await service.create_adjustment(payroll_data.alice_id, Decimal("0"), "Nothing")
        with pytest.raises(ValidationError):
            await service.create_adjustment(payroll_data.alice_id, Decimal("5"), "  ")


class TestLineItemEdits:
    """Test hour and adjustment edits."""

    async def test_edit_requires_review(self, service: PayrollRunService, payroll_data: PayrollData):
        result = await service.create_run(PERIOD_START, PERIOD_END)
        line = lines_by_teacher(result.run)[payroll_data.alice_id]

        with pytest.raises(ValidationError) as exc_info:
            await service.update_line_item_hours(line.id, Decimal("8"))

        assert isinstance(exc_info.value, RunNotEditableError)
        assert exc_info.value.status == "draft"
        line = await service.require_line_item(line.id)
        assert line.actual_hours == Decimal("10.00")

    async def test_update_hours_recomputes_line_and_totals(
        self, service: PayrollRunService, payroll_data: PayrollData
    ):
        run = await create_review_run(service)
        line = lines_by_teacher(run)[payroll_data.alice_id]
        version = run.version

        updated = await service.update_line_item_hours(line.id, Decimal("8"), expected_version=version)

        assert updated.actual_hours == Decimal("8.00")
        assert updated.calculated_amount == Decimal("500.00")
        assert updated.final_amount == Decimal("400.00")

        run = await service.require_run(run.id)
        assert run.total_hours == Decimal("14.00")
        assert run.total_calculated == Decimal("650.00")
        assert run.total_adjusted == Decimal("550.00")
        assert run.version == version + 1

    async def test_stale_version_rejected(self, service: PayrollRunService, payroll_data: PayrollData):
        run = await create_review_run(service)
        line = lines_by_teacher(run)[payroll_data.alice_id]
        stale = run.version
        await service.update_line_item_hours(line.id, Decimal("9"))

        with pytest.raises(StaleRunError):
            await service.update_line_item_hours(line.id, Decimal("8"), expected_version=stale)

        line = await service.require_line_item(line.id)
        assert line.actual_hours == Decimal("9.00")

    async def test_negative_hours_rejected(self, service: PayrollRunService, payroll_data: PayrollData):
        run = await create_review_run(service)
        line = lines_by_teacher(run)[payroll_data.alice_id]

        with pytest.raises(ValidationError):
            await service.update_line_item_hours(line.id, Decimal("-1"))

    async def test_update_adjustment(self, service: PayrollRunService, payroll_data: PayrollData):
        run = await create_review_run(service)
        line = lines_by_teacher(run)[payroll_data.bob_id]

        updated = await service.update_line_item_adjustment(line.id, Decimal("-20"), "Left early")

        assert updated.adjustment_amount == Decimal("-20.00")
        assert updated.adjustment_note == "Left early"
        assert updated.final_amount == Decimal("130.00")

    async def test_hours_and_adjustment_in_one_write(
        self, service: PayrollRunService, payroll_data: PayrollData
    ):
        run = await create_review_run(service)
        line = lines_by_teacher(run)[payroll_data.alice_id]
        version = run.version

        updated = await service.update_line_item(
            line.id,
            actual_hours=Decimal("8"),
            adjustment_amount=Decimal("-15"),
            adjustment_note="Late start",
            expected_version=version,
        )

        assert updated.actual_hours == Decimal("8.00")
        assert updated.adjustment_amount == Decimal("-15.00")
        assert updated.adjustment_note == "Late start"
        assert updated.final_amount == Decimal("385.00")
        run = await service.require_run(run.id)
        assert run.total_adjusted == Decimal("535.00")
        assert run.version == version + 1

    async def test_bad_hours_keep_adjustment_unsaved(
        self, service: PayrollRunService, payroll_data: PayrollData
    ):
        run = await create_review_run(service)
        line = lines_by_teacher(run)[payroll_data.alice_id]
        version = run.version

        with pytest.raises(ValidationError):
            await service.update_line_item(
                line.id, actual_hours=Decimal("-1"), adjustment_amount=Decimal("40")
            )

        line = await service.require_line_item(line.id)
        assert line.adjustment_amount == Decimal("0.00")
        assert line.final_amount == Decimal("500.00")
        assert (await service.require_run(run.id)).version == version

    async def test_update_needs_a_field(self, service: PayrollRunService, payroll_data: PayrollData):
        run = await create_review_run(service)
        line = lines_by_teacher(run)[payroll_data.alice_id]

        with pytest.raises(ValidationError):
            await service.update_line_item(line.id)

    async def test_unknown_line_item(self, service: PayrollRunService, payroll_data: PayrollData):
        with pytest.raises(NotFoundError):
            await service.update_line_item_hours(uuid4(), Decimal("1"))


class TestBulkAdjustHours:
    """Test setting hours for several teachers at once."""

    async def test_zero_hours_leaves_only_adjustments(
        self, service: PayrollRunService, payroll_data: PayrollData, notifier
    ):
        run = await create_review_run(service)
        lines = lines_by_teacher(run)
        await service.update_line_item_adjustment(lines[payroll_data.alice_id].id, Decimal("10"))

        updated = await service.bulk_adjust_hours(
            run.id, [payroll_data.alice_id, payroll_data.bob_id], Decimal("0")
        )

        assert updated == 2
        run = await service.require_run(run.id)
        for line in run.line_items:
            if line.teacher_id in (payroll_data.alice_id, payroll_data.bob_id):
                assert line.actual_hours == Decimal("0.00")
                assert line.final_amount == line.adjustment_amount
        assert run.total_adjusted == Decimal("10.00")
        assert notifier.successes[-1].startswith("Updated 2 line item(s)")

    async def test_each_line_keeps_its_own_rate(self, service: PayrollRunService, payroll_data: PayrollData):
        run = await create_review_run(service)
        await service.bulk_adjust_hours(run.id, [payroll_data.alice_id, payroll_data.bob_id], Decimal("2"))

        lines = lines_by_teacher(await service.require_run(run.id))
        assert lines[payroll_data.alice_id].final_amount == Decimal("100.00")
        assert lines[payroll_data.bob_id].final_amount == Decimal("50.00")

    async def test_validation(self, service: PayrollRunService, payroll_data: PayrollData):
        run = await create_review_run(service)
        with pytest.raises(ValidationError):
            await service.bulk_adjust_hours(run.id, [], Decimal("1"))
        with pytest.raises(ValidationError):
            await service.bulk_adjust_hours(run.id, [payroll_data.alice_id], Decimal("-1"))
        with pytest.raises(ValidationError):
            await service.bulk_adjust_hours(run.id, [uuid4()], Decimal("1"))

    async def test_draft_run_rejected(self, service: PayrollRunService, payroll_data: PayrollData):
        result = await service.create_run(PERIOD_START, PERIOD_END)

        with pytest.raises(ValidationError):
            await service.bulk_adjust_hours(result.run.id, [payroll_data.alice_id], Decimal("1"))


class TestManualLineItems:
    """Test one-off line items."""

    async def test_add_and_delete(self, service: PayrollRunService, payroll_data: PayrollData):
        run = await create_review_run(service)

        line = await service.add_manual_line_item(
            run.id, payroll_data.bob_id, "Parent conference", Decimal("1.5"), Decimal("30")
        )

        assert line.is_manual
        assert line.rate_source == "manual"
        assert line.final_amount == Decimal("45.00")
        assert line.teacher_name == "Bob Brown"

        run = await service.require_run(run.id)
        assert len(run.line_items) == 4
        assert run.total_adjusted == Decimal("695.00")

        await service.delete_line_item(line.id)
        run = await service.require_run(run.id)
        assert len(run.line_items) == 3
        assert run.total_adjusted == Decimal("650.00")

    async def test_add_requires_review(self, service: PayrollRunService, payroll_data: PayrollData):
        result = await service.create_run(PERIOD_START, PERIOD_END)
        with pytest.raises(RunNotEditableError):
            await service.add_manual_line_item(
                result.run.id, payroll_data.bob_id, "Extra", Decimal("1"), Decimal("30")
            )

    async def test_add_validation(self, service: PayrollRunService, payroll_data: PayrollData):
        run = await create_review_run(service)
        with pytest.raises(ValidationError):
            await service.add_manual_line_item(run.id, payroll_data.bob_id, "", Decimal("1"), Decimal("30"))

    async def test_assignment_lines_cannot_be_deleted(
        self, service: PayrollRunService, payroll_data: PayrollData
    ):
        run = await create_review_run(service)
        line = lines_by_teacher(run)[payroll_data.alice_id]

        with pytest.raises(ValidationError):
            await service.delete_line_item(line.id)


class TestTransitions:
    """Test the run lifecycle through the service."""

    async def test_draft_to_approved_rejected(self, service: PayrollRunService, payroll_data: PayrollData):
        result = await service.create_run(PERIOD_START, PERIOD_END)

        with pytest.raises(InvalidTransitionError):
            await service.transition_status(result.run.id, "approved")

    async def test_unknown_status(self, service: PayrollRunService, payroll_data: PayrollData):
        result = await service.create_run(PERIOD_START, PERIOD_END)

        with pytest.raises(ValidationError):
            await service.transition_status(result.run.id, "archived")

    async def test_send_back_keeps_data(self, service: PayrollRunService, payroll_data: PayrollData):
        run = await create_review_run(service)
        line = lines_by_teacher(run)[payroll_data.alice_id]
        await service.update_line_item_hours(line.id, Decimal("7"))

        await service.transition_status(run.id, "draft")
        run = await service.transition_status(run.id, "review")

        line = lines_by_teacher(run)[payroll_data.alice_id]
        assert run.status == "review"
        assert line.actual_hours == Decimal("7.00")
        assert run.total_adjusted == Decimal("500.00")

    async def test_stale_transition_rejected(self, service: PayrollRunService, payroll_data: PayrollData):
        result = await service.create_run(PERIOD_START, PERIOD_END)

        with pytest.raises(StaleRunError):
            await service.transition_status(result.run.id, "review", expected_version=99)

    async def test_paid_sends_notifications(
        self,
        service: PayrollRunService,
        dispatcher: PaymentNotificationDispatcher,
        webhook_requests: list[httpx.Request],
        payroll_data: PayrollData,
    ):
        run = await create_review_run(service)
        run = await service.transition_status(run.id, "approved", approved_by="owner@example.com")
        assert run.approved_by == "owner@example.com"
        assert run.approved_at is not None

        run = await service.transition_status(run.id, "paid")
        assert run.status == "paid"
        assert run.paid_at is not None

        await dispatcher.drain()

        # Bob has no email
        payloads = {json.loads(r.content)["teacher"]["name"]: json.loads(r.content) for r in webhook_requests}
        assert set(payloads) == {"Alice Adams", "Carol Chen"}

        alice = payloads["Alice Adams"]
        assert alice["payment_id"] == f"bulk-{run.id}-{payroll_data.alice_id}"
        assert alice["teacher"]["email"] == "alice@example.com"
        assert alice["amounts"] == {"total": 500.0, "hours": 10.0}
        assert alice["period"] == {"start": "2026-01-05", "end": "2026-01-18"}
        assert alice["payment_method"] == "Bulk Payroll"
        assert alice["line_items"] == [
            {"student": "Sam Smith", "service": "Tutoring", "hours": 10.0, "rate": 50.0, "amount": 500.0}
        ]
        assert payloads["Carol Chen"]["line_items"][0]["student"] == "Service Assignment"

    async def test_webhook_failure_does_not_undo_paid(self, session, payroll_data: PayrollData):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        dispatcher = PaymentNotificationDispatcher(
            "https://hooks.example.com/payroll", transport=httpx.MockTransport(handler)
        )
        service = PayrollRunService(session, dispatcher=dispatcher)
        run = await create_review_run(service)
        await service.transition_status(run.id, "approved")

        run = await service.transition_status(run.id, "paid")
        await dispatcher.drain()

        run = await service.require_run(run.id)
        assert run.status == "paid"

    async def test_paid_is_terminal(self, service: PayrollRunService, payroll_data: PayrollData):
        run = await create_review_run(service)
        await service.transition_status(run.id, "approved")
        await service.transition_status(run.id, "paid")

        with pytest.raises(InvalidTransitionError):
            await service.transition_status(run.id, "review")


class TestDeleteAndExport:
    """Test deleting drafts and exporting CSV."""

    async def test_delete_draft_releases_adjustments(
        self, session, service: PayrollRunService, payroll_data: PayrollData
    ):
        adjustment = await service.create_adjustment(payroll_data.alice_id, Decimal("15"), "Bonus")
        result = await service.create_run(PERIOD_START, PERIOD_END)

        await service.delete_run(result.run.id)

        assert await service.get_run(result.run.id) is None
        pending = await session.execute(
            select(PayrollAdjustment).where(PayrollAdjustment.id == adjustment.id)
        )
        assert pending.scalar_one().target_payroll_run_id is None

    async def test_only_drafts_can_be_deleted(self, service: PayrollRunService, payroll_data: PayrollData):
        run = await create_review_run(service)

        with pytest.raises(InvalidTransitionError):
            await service.delete_run(run.id)

    async def test_export_csv(self, service: PayrollRunService, payroll_data: PayrollData):
        result = await service.create_run(PERIOD_START, PERIOD_END)

        content = await service.export_csv(result.run.id)

        assert content.splitlines() == [
            "Name,Amount,Memo",
            "Alice Adams,500.00,Eaton Academic Payroll Jan 5, 2026 - Jan 18, 2026",
            "Bob Brown,150.00,Eaton Academic Payroll Jan 5, 2026 - Jan 18, 2026",
        ]
