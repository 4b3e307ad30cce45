"""Payroll run service - orchestrates run generation, edits and the lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice_engine.calculators.engine import PayrollEngine
from backoffice_engine.calculators.export import TeacherPayLine, generate_payroll_csv
from backoffice_engine.calculators.line_builder import LineItemBuilder
from backoffice_engine.calculators.periods import default_biweekly_period
from backoffice_engine.calculators.types import AssignmentInput
from backoffice_engine.exceptions import NotFoundError, StaleRunError, ValidationError
from backoffice_engine.models import (
    Enrollment,
    PayrollAdjustment,
    PayrollLineItem,
    PayrollRun,
    Teacher,
    TeacherAssignment,
)
from backoffice_engine.services.notifications import PaymentNotificationDispatcher
from backoffice_engine.services.notifier import LoggingNotifier, UserNotifier
from backoffice_engine.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
)

logger = logging.getLogger(__name__)

# Everything the API and the paid notifications read from a line item
_LINE_ITEM_OPTIONS = (
    selectinload(PayrollLineItem.teacher),
    selectinload(PayrollLineItem.service),
    selectinload(PayrollLineItem.enrollment).selectinload(Enrollment.student),
)


@dataclass
class CreateRunResult:
    """A newly generated run plus anything the operator should know."""

    run: PayrollRun
    warnings: list[str] = field(default_factory=list)
    applied_adjustments: int = 0


def assignment_to_input(assignment: TeacherAssignment) -> AssignmentInput:
    """Snapshot an assignment row (relationships loaded) for the engine."""
    enrollment = assignment.enrollment
    # The enrollment's service wins over the assignment's own service
    service = (enrollment.service if enrollment and enrollment.service else None) or assignment.service
    student = enrollment.student if enrollment else None
    teacher = assignment.teacher

    return AssignmentInput(
        assignment_id=assignment.id,
        teacher_id=assignment.teacher_id,
        teacher_name=teacher.display_name if teacher else None,
        teacher_default_rate=teacher.default_hourly_rate if teacher else None,
        hourly_rate_teacher=assignment.hourly_rate_teacher,
        hours_per_week=assignment.hours_per_week,
        weekly_schedule=assignment.weekly_schedule,
        start_date=assignment.start_date,
        end_date=assignment.end_date,
        is_active=assignment.is_active,
        enrollment_id=assignment.enrollment_id,
        service_id=service.id if service else assignment.service_id,
        service_name=service.name if service else None,
        service_default_rate=service.default_teacher_rate if service else None,
        student_name=student.full_name if student else None,
    )


class PayrollRunService:
    """Service for managing the payroll run lifecycle.

    Operations:
    - create_run: Generate a draft run from active assignments
    - update_line_item: Edit hours and/or the adjustment of one line
    - update_line_item_hours / update_line_item_adjustment: Single-field edits
    - bulk_adjust_hours: Set the same hours on every line of some teachers
    - add_manual_line_item / delete_line_item: One-off work
    - transition_status: draft → review → approved → paid (review → draft)
    - delete_run: Discard a draft
    - create_adjustment: Carry an amount forward to the next run
    - export_csv: Bank bulk-payment file

    Every operation commits its own unit of work. Optional
    ``expected_version`` arguments reject writes against a run that
    changed since the caller read it.
    """

    def __init__(
        self,
        session: AsyncSession,
        engine: PayrollEngine | None = None,
        dispatcher: PaymentNotificationDispatcher | None = None,
        notifier: UserNotifier | None = None,
        company_name: str = "Eaton Academic",
    ):
        self.session = session
        self.engine = engine or PayrollEngine()
        self.dispatcher = dispatcher
        self.notifier = notifier or LoggingNotifier()
        self.company_name = company_name

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def get_run(self, run_id: UUID, load_lines: bool = True) -> PayrollRun | None:
        """Load a run, optionally with its line items and their relations."""
        stmt = select(PayrollRun).where(PayrollRun.id == run_id)
        if load_lines:
            stmt = stmt.options(
                selectinload(PayrollRun.line_items).options(*_LINE_ITEM_OPTIONS)
            )
        result = await self.session.execute(
            stmt.execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def require_run(self, run_id: UUID) -> PayrollRun:
        run = await self.get_run(run_id)
        if run is None:
            raise NotFoundError("Payroll run", run_id)
        return run

    async def list_runs(self, status: str | None = None) -> list[PayrollRun]:
        """Runs newest period first."""
        stmt = select(PayrollRun).order_by(PayrollRun.period_start.desc())
        if status:
            stmt = stmt.where(PayrollRun.status == status)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def require_line_item(self, line_item_id: UUID) -> PayrollLineItem:
        """Load a line item together with its run and the run's lines."""
        result = await self.session.execute(
            select(PayrollLineItem)
            .where(PayrollLineItem.id == line_item_id)
            .options(
                *_LINE_ITEM_OPTIONS,
                selectinload(PayrollLineItem.payroll_run).selectinload(
                    PayrollRun.line_items
                ),
            )
            .execution_options(populate_existing=True)
        )
        line = result.scalar_one_or_none()
        if line is None:
            raise NotFoundError("Payroll line item", line_item_id)
        return line

    async def load_active_assignments(self) -> list[AssignmentInput]:
        result = await self.session.execute(
            select(TeacherAssignment)
            .where(TeacherAssignment.is_active.is_(True))
            .options(
                selectinload(TeacherAssignment.teacher),
                selectinload(TeacherAssignment.service),
                selectinload(TeacherAssignment.enrollment).options(
                    selectinload(Enrollment.student),
                    selectinload(Enrollment.service),
                ),
            )
            .order_by(TeacherAssignment.created_at)
        )
        return [assignment_to_input(a) for a in result.scalars().all()]

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def create_run(
        self,
        period_start: date | None = None,
        period_end: date | None = None,
        notes: str | None = None,
    ) -> CreateRunResult:
        """Generate and persist a draft run.

        Without bounds the current bi-weekly period is used. Pending
        carry-forward adjustments are linked to the new run and added to
        the first line item of their teacher.
        """
        if period_start is None and period_end is None:
            period_start, period_end = default_biweekly_period()
        elif period_start is None or period_end is None:
            raise ValidationError("Both period start and period end are required")

        generated = self.engine.generate_run(
            period_start, period_end, await self.load_active_assignments()
        )

        run = PayrollRun(
            period_start=period_start,
            period_end=period_end,
            status=PayrollRunStatus.DRAFT.value,
            notes=notes,
            version=1,
        )
        lines = [PayrollLineItem(**candidate.to_row_dict()) for candidate in generated.lines]
        run.line_items = lines
        self.session.add(run)
        await self.session.flush()

        result = CreateRunResult(run=run)
        await self._apply_pending_adjustments(run, lines, result)
        self._recalculate_totals(run)
        await self.session.commit()

        logger.info(
            "Created payroll run %s for %s..%s: %d line item(s), %d teacher(s)",
            run.id,
            period_start,
            period_end,
            len(lines),
            run.teacher_count,
        )
        for warning in result.warnings:
            self.notifier.notify_error(warning)

        result.run = await self.require_run(run.id)
        return result

    async def _apply_pending_adjustments(
        self,
        run: PayrollRun,
        lines: list[PayrollLineItem],
        result: CreateRunResult,
    ) -> None:
        pending = await self.session.execute(
            select(PayrollAdjustment)
            .where(PayrollAdjustment.target_payroll_run_id.is_(None))
            .options(selectinload(PayrollAdjustment.teacher))
            .order_by(PayrollAdjustment.created_at)
        )

        first_line: dict[UUID, PayrollLineItem] = {}
        for line in lines:
            first_line.setdefault(line.teacher_id, line)

        for adjustment in pending.scalars().all():
            line = first_line.get(adjustment.teacher_id)
            if line is None:
                name = adjustment.teacher.display_name if adjustment.teacher else adjustment.teacher_id
                result.warnings.append(
                    f"Adjustment of ${adjustment.amount:,.2f} for {name} was not applied: "
                    f"no line item in this run"
                )
                continue

            LineItemBuilder.apply_adjustment(
                line, LineItemBuilder.add_money(line.adjustment_amount, adjustment.amount)
            )
            note = f"Carry-forward: {adjustment.reason}"
            line.adjustment_note = f"{line.adjustment_note}; {note}" if line.adjustment_note else note
            adjustment.target_payroll_run_id = run.id
            result.applied_adjustments += 1

    # ------------------------------------------------------------------
    # Line item edits (review only)
    # ------------------------------------------------------------------

    async def update_line_item(
        self,
        line_item_id: UUID,
        actual_hours: Any = None,
        adjustment_amount: Any = None,
        adjustment_note: str | None = None,
        expected_version: int | None = None,
    ) -> PayrollLineItem:
        """Change hours, the adjustment, or both in one commit.

        Hours are validated before anything on the line changes, so a
        rejected edit leaves the line and the run version as they were.
        The note is only written together with an adjustment.
        """
        if actual_hours is None and adjustment_amount is None:
            raise ValidationError("Nothing to update: send actual_hours or adjustment_amount")

        line = await self.require_line_item(line_item_id)
        run = line.payroll_run
        self._check_version(run, expected_version)
        PayrollRunStateMachine.require_editable(run)

        if actual_hours is not None:
            LineItemBuilder.apply_hours(line, actual_hours)
        if adjustment_amount is not None:
            LineItemBuilder.apply_adjustment(line, adjustment_amount)
            line.adjustment_note = adjustment_note
        self._recalculate_totals(run)
        self._touch(run)
        await self.session.commit()
        return await self.require_line_item(line_item_id)

    async def update_line_item_hours(
        self,
        line_item_id: UUID,
        new_hours: Any,
        expected_version: int | None = None,
    ) -> PayrollLineItem:
        """Set actual hours; recomputes the line and the run totals."""
        return await self.update_line_item(
            line_item_id, actual_hours=new_hours, expected_version=expected_version
        )

    async def update_line_item_adjustment(
        self,
        line_item_id: UUID,
        adjustment_amount: Any,
        note: str | None = None,
        expected_version: int | None = None,
    ) -> PayrollLineItem:
        """Set the manual adjustment delta on a line."""
        return await self.update_line_item(
            line_item_id,
            adjustment_amount=adjustment_amount,
            adjustment_note=note,
            expected_version=expected_version,
        )

    async def bulk_adjust_hours(
        self,
        run_id: UUID,
        teacher_ids: Iterable[UUID],
        hours: Any,
        expected_version: int | None = None,
    ) -> int:
        """Set the same actual hours on every line of the given teachers.

        Each line keeps its own rate. Returns the number of lines updated.
        """
        teacher_ids = set(teacher_ids)
        if not teacher_ids:
            raise ValidationError("At least one teacher must be selected")
        hours = LineItemBuilder.round_hours(hours)
        if hours < 0:
            raise ValidationError("Hours cannot be negative")

        run = await self.require_run(run_id)
        self._check_version(run, expected_version)
        PayrollRunStateMachine.require_editable(run)

        matching = [line for line in run.line_items if line.teacher_id in teacher_ids]
        if not matching:
            raise ValidationError("No line items found for the selected teachers")

        for line in matching:
            LineItemBuilder.apply_hours(line, hours)
        self._recalculate_totals(run)
        self._touch(run)
        await self.session.commit()

        message = f"Updated {len(matching)} line item(s) to {hours} hours"
        logger.info("Payroll run %s: %s", run.id, message)
        self.notifier.notify_success(message)
        return len(matching)

    async def add_manual_line_item(
        self,
        run_id: UUID,
        teacher_id: UUID,
        description: str,
        hours: Any,
        hourly_rate: Any,
    ) -> PayrollLineItem:
        """Add a one-off line (no assignment) to a run under review."""
        candidate = LineItemBuilder.create_manual_line(teacher_id, description, hours, hourly_rate)

        run = await self.require_run(run_id)
        PayrollRunStateMachine.require_editable(run)
        if await self.session.get(Teacher, teacher_id) is None:
            raise NotFoundError("Teacher", teacher_id)

        line = PayrollLineItem(**candidate.to_row_dict())
        run.line_items.append(line)
        self._recalculate_totals(run)
        self._touch(run)
        await self.session.commit()

        logger.info("Payroll run %s: added manual line item %s", run.id, line.id)
        return await self.require_line_item(line.id)

    async def delete_line_item(self, line_item_id: UUID) -> None:
        """Remove a manual line item from a run under review."""
        line = await self.require_line_item(line_item_id)
        run = line.payroll_run
        PayrollRunStateMachine.require_editable(run)
        if not line.is_manual:
            raise ValidationError("Only manual line items can be deleted")

        run.line_items.remove(line)
        self._recalculate_totals(run)
        self._touch(run)
        await self.session.commit()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def transition_status(
        self,
        run_id: UUID,
        new_status: str,
        approved_by: str | None = None,
        expected_version: int | None = None,
    ) -> PayrollRun:
        """Move a run to a new status.

        Side effects:
        - approved: stamp approved_at / approved_by
        - draft (sent back from review): line items are kept as they are
        - paid: stamp paid_at, then schedule payment notifications after
          the commit succeeds

        Raises InvalidTransitionError if the transition is not allowed.
        """
        try:
            to_status = PayrollRunStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown payroll run status: {new_status!r}") from None

        run = await self.require_run(run_id)
        self._check_version(run, expected_version)
        from_status = run.status
        PayrollRunStateMachine.validate_transition(from_status, to_status)

        now = datetime.now(timezone.utc)
        if to_status == PayrollRunStatus.APPROVED:
            run.approved_at = now
            run.approved_by = approved_by
        elif to_status == PayrollRunStatus.PAID:
            run.paid_at = now
        elif PayrollRunStateMachine.is_send_back(from_status, to_status):
            logger.info("Payroll run %s sent back to draft", run.id)

        run.status = to_status.value
        self._touch(run)
        await self.session.commit()

        logger.info("Payroll run %s: %s -> %s", run.id, from_status, to_status.value)
        self.notifier.notify_success(f"Payroll run moved to {to_status.value}")

        if to_status == PayrollRunStatus.PAID:
            if self.dispatcher is None:
                logger.warning("Payroll run %s paid with no notification dispatcher", run.id)
            else:
                self.dispatcher.dispatch(run, run.line_items)

        return run

    async def delete_run(self, run_id: UUID) -> None:
        """Delete a draft run; its carry-forward adjustments become pending again."""
        run = await self.require_run(run_id)
        if not PayrollRunStateMachine.can_delete(run.status):
            raise InvalidTransitionError(
                run.status, "deleted", "Only draft payroll runs can be deleted"
            )

        await self.session.execute(
            update(PayrollAdjustment)
            .where(PayrollAdjustment.target_payroll_run_id == run.id)
            .values(target_payroll_run_id=None)
        )
        await self.session.delete(run)
        await self.session.commit()
        logger.info("Deleted payroll run %s", run_id)

    # ------------------------------------------------------------------
    # Carry-forward adjustments and export
    # ------------------------------------------------------------------

    async def create_adjustment(
        self,
        teacher_id: UUID,
        amount: Any,
        reason: str,
        source_run_id: UUID | None = None,
        created_by: str | None = None,
    ) -> PayrollAdjustment:
        """Record an amount to add to (or take from) the teacher's next run."""
        amount = LineItemBuilder.round_to_cents(amount)
        if amount == 0:
            raise ValidationError("Adjustment amount must not be zero")
        if not reason or not reason.strip():
            raise ValidationError("Reason is required")
        if await self.session.get(Teacher, teacher_id) is None:
            raise NotFoundError("Teacher", teacher_id)
        if source_run_id is not None and await self.get_run(source_run_id, load_lines=False) is None:
            raise NotFoundError("Payroll run", source_run_id)

        adjustment = PayrollAdjustment(
            teacher_id=teacher_id,
            amount=amount,
            reason=reason.strip(),
            source_payroll_run_id=source_run_id,
            created_by=created_by,
        )
        self.session.add(adjustment)
        await self.session.commit()
        return adjustment

    async def list_pending_adjustments(self, teacher_id: UUID | None = None) -> list[PayrollAdjustment]:
        stmt = (
            select(PayrollAdjustment)
            .where(PayrollAdjustment.target_payroll_run_id.is_(None))
            .order_by(PayrollAdjustment.created_at)
        )
        if teacher_id is not None:
            stmt = stmt.where(PayrollAdjustment.teacher_id == teacher_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def export_csv(self, run_id: UUID) -> str:
        run = await self.require_run(run_id)
        lines = [
            TeacherPayLine(
                teacher_id=line.teacher_id,
                teacher_name=line.teacher.display_name if line.teacher else None,
                final_amount=line.final_amount,
            )
            for line in run.line_items
        ]
        return generate_payroll_csv(run.period_start, run.period_end, lines, self.company_name)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _recalculate_totals(run: PayrollRun) -> None:
        totals = PayrollEngine.compute_totals(run.line_items)
        run.total_hours = totals.total_hours
        run.total_calculated = totals.total_calculated
        run.total_adjusted = totals.total_adjusted
        run.teacher_count = totals.teacher_count

    @staticmethod
    def _touch(run: PayrollRun) -> None:
        run.version = (run.version or 0) + 1

    @staticmethod
    def _check_version(run: PayrollRun, expected_version: int | None) -> None:
        if expected_version is not None and expected_version != run.version:
            raise StaleRunError(run.id, expected_version, run.version)
