"""Payroll calculation engine - builds a draft run from active assignments."""

from __future__ import annotations

from datetime import date
from typing import Iterable

from backoffice_engine.calculators.hours import calculate_period_hours, effective_window
from backoffice_engine.calculators.line_builder import LineItemBuilder
from backoffice_engine.calculators.rate_resolver import RateResolver
from backoffice_engine.calculators.types import (
    AssignmentInput,
    GeneratedRun,
    LineCandidate,
    Proration,
    RunTotals,
)
from backoffice_engine.exceptions import ValidationError


class PayrollEngine:
    """Main payroll calculation engine.

    Calculation pipeline (stable order per assignment):
    1) Skip inactive assignments and those not overlapping the period
    2) Compute calculated hours (schedule, or weekly hours prorated)
    3) Resolve the hourly rate (assignment -> service -> teacher)
    4) Emit one line item with actual hours = calculated hours
    5) Aggregate run totals and distinct teacher count

    The engine is pure: loading assignments and saving lines is the
    caller's job.
    """

    def __init__(self, proration: Proration | str = Proration.CALENDAR):
        self.proration = Proration(proration)

    def generate_run(
        self,
        period_start: date,
        period_end: date,
        assignments: Iterable[AssignmentInput],
    ) -> GeneratedRun:
        """Generate draft line items and totals for a pay period."""
        if period_end < period_start:
            raise ValidationError("Period end must not be before period start")

        lines: list[LineCandidate] = []
        for assignment in assignments:
            line = self.build_line(period_start, period_end, assignment)
            if line is not None:
                lines.append(line)

        return GeneratedRun(
            period_start=period_start,
            period_end=period_end,
            lines=lines,
            totals=self.compute_totals(lines),
        )

    def build_line(
        self,
        period_start: date,
        period_end: date,
        assignment: AssignmentInput,
    ) -> LineCandidate | None:
        """Build the line for one assignment, or None when nothing is owed."""
        if not assignment.is_active:
            return None

        if effective_window(
            period_start, period_end, assignment.start_date, assignment.end_date
        ) is None:
            return None

        period_hours = calculate_period_hours(
            assignment.hours_per_week,
            period_start,
            period_end,
            assignment.start_date,
            assignment.end_date,
            weekly_schedule=assignment.weekly_schedule,
            proration=self.proration,
        )
        if period_hours.hours == 0 and not period_hours.is_variable:
            return None

        resolution = RateResolver.resolve_for_assignment(assignment)

        return LineItemBuilder.create_assignment_line(
            teacher_id=assignment.teacher_id,
            assignment_id=assignment.assignment_id,
            description=self.describe(assignment),
            hours=period_hours.hours,
            rate=resolution.rate,
            rate_source=resolution.source,
            enrollment_id=assignment.enrollment_id,
            service_id=assignment.service_id,
            is_variable_hours=period_hours.is_variable,
        )

    @staticmethod
    def describe(assignment: AssignmentInput) -> str:
        """'Student - Service' for student work, the service name for
        service-level assignments, else the teacher's name."""
        if assignment.student_name:
            if assignment.service_name:
                return f"{assignment.student_name} - {assignment.service_name}"
            return assignment.student_name
        if assignment.service_name:
            return assignment.service_name
        return assignment.teacher_name or "Unknown"

    @staticmethod
    def compute_totals(lines: Iterable[LineCandidate]) -> RunTotals:
        """Sum hours and amounts across line items (ORM rows work too)."""
        lines = list(lines)
        return RunTotals(
            total_hours=LineItemBuilder.sum_money(line.actual_hours for line in lines),
            total_calculated=LineItemBuilder.sum_money(
                line.calculated_amount for line in lines
            ),
            total_adjusted=LineItemBuilder.sum_money(line.final_amount for line in lines),
            teacher_count=len({line.teacher_id for line in lines}),
        )
