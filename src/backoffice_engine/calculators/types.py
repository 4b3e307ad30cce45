"""Type definitions for the payroll calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class RateSource(str, Enum):
    """Which tier of rate precedence produced a line item's hourly rate."""

    ASSIGNMENT = "assignment"
    SERVICE = "service"
    TEACHER = "teacher"
    MANUAL = "manual"


class Proration(str, Enum):
    """How a weekly hours figure is scaled to a pay period."""

    CALENDAR = "calendar"  # days / 7
    WEEKDAY = "weekday"  # Mon-Fri days / 5


@dataclass(frozen=True)
class RateResolution:
    """Resolved hourly rate plus the audit label of the tier that won."""

    rate: Decimal
    source: RateSource


@dataclass(frozen=True)
class PeriodHours:
    """Hours owed for a period; variable when the assignment has no hours figure."""

    hours: Decimal
    is_variable: bool = False


@dataclass
class AssignmentInput:
    """Plain snapshot of an active teacher assignment and its related rows."""

    assignment_id: UUID
    teacher_id: UUID
    teacher_name: str | None = None
    teacher_default_rate: Decimal | None = None

    hourly_rate_teacher: Decimal | None = None
    hours_per_week: Decimal | None = None
    weekly_schedule: dict[str, Any] | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool = True

    enrollment_id: UUID | None = None
    service_id: UUID | None = None
    service_name: str | None = None
    service_default_rate: Decimal | None = None
    student_name: str | None = None


@dataclass
class LineCandidate:
    """A payroll line item before persistence."""

    teacher_id: UUID
    description: str
    calculated_hours: Decimal
    actual_hours: Decimal
    hourly_rate: Decimal
    rate_source: RateSource
    calculated_amount: Decimal
    final_amount: Decimal
    adjustment_amount: Decimal = Decimal("0.00")
    adjustment_note: str | None = None

    # Traceability (all None for manual entries)
    teacher_assignment_id: UUID | None = None
    enrollment_id: UUID | None = None
    service_id: UUID | None = None
    is_variable_hours: bool = False

    @property
    def is_manual(self) -> bool:
        return self.teacher_assignment_id is None

    def to_row_dict(self) -> dict[str, Any]:
        """Column values for a ``PayrollLineItem`` insert."""
        return {
            "teacher_id": self.teacher_id,
            "teacher_assignment_id": self.teacher_assignment_id,
            "enrollment_id": self.enrollment_id,
            "service_id": self.service_id,
            "description": self.description,
            "calculated_hours": self.calculated_hours,
            "actual_hours": self.actual_hours,
            "hourly_rate": self.hourly_rate,
            "rate_source": self.rate_source.value,
            "calculated_amount": self.calculated_amount,
            "adjustment_amount": self.adjustment_amount,
            "adjustment_note": self.adjustment_note,
            "final_amount": self.final_amount,
            "is_variable_hours": self.is_variable_hours,
        }


@dataclass(frozen=True)
class RunTotals:
    """Aggregates stored on the payroll run."""

    total_hours: Decimal = Decimal("0.00")
    total_calculated: Decimal = Decimal("0.00")
    total_adjusted: Decimal = Decimal("0.00")
    teacher_count: int = 0


@dataclass
class GeneratedRun:
    """Result of generating a draft run from active assignments."""

    period_start: date
    period_end: date
    lines: list[LineCandidate] = field(default_factory=list)
    totals: RunTotals = field(default_factory=RunTotals)
    status: str = "draft"
