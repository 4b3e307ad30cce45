"""Line item builder and cent-exact money arithmetic."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Protocol
from uuid import UUID

from backoffice_engine.calculators.types import LineCandidate, RateSource
from backoffice_engine.exceptions import ValidationError


class EditableLine(Protocol):
    """Anything carrying line item amounts (a ``LineCandidate`` or an ORM row)."""

    actual_hours: Decimal
    hourly_rate: Decimal
    calculated_amount: Decimal
    adjustment_amount: Decimal
    final_amount: Decimal


class LineItemBuilder:
    """Builds payroll line items.

    Rounding (non-negotiable):
    - Every multiply/add/subtract is rounded half-up to cents
    - Hours are kept to 2 decimals
    - final_amount = round(round(actual_hours * hourly_rate) + adjustment_amount)
    """

    OUTPUT_PRECISION = Decimal("0.01")
    HOURS_PRECISION = Decimal("0.01")
    ZERO = Decimal("0.00")

    @staticmethod
    def to_decimal(value: Any) -> Decimal:
        """Coerce int/float/str input to Decimal without binary float noise."""
        if isinstance(value, Decimal):
            return value
        if value is None:
            return Decimal("0")
        return Decimal(str(value))

    @staticmethod
    def round_to_cents(amount: Any) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return LineItemBuilder.to_decimal(amount).quantize(
            LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP
        )

    @staticmethod
    def round_hours(hours: Any) -> Decimal:
        return LineItemBuilder.to_decimal(hours).quantize(
            LineItemBuilder.HOURS_PRECISION, rounding=ROUND_HALF_UP
        )

    @staticmethod
    def multiply_money(a: Any, b: Any) -> Decimal:
        """Multiply two values and round to cents (e.g. hours * rate)."""
        return LineItemBuilder.round_to_cents(
            LineItemBuilder.to_decimal(a) * LineItemBuilder.to_decimal(b)
        )

    @staticmethod
    def add_money(a: Any, b: Any) -> Decimal:
        return LineItemBuilder.round_to_cents(
            LineItemBuilder.to_decimal(a) + LineItemBuilder.to_decimal(b)
        )

    @staticmethod
    def sum_money(values: Iterable[Any]) -> Decimal:
        """Sum money values, rounding after each addition."""
        total = LineItemBuilder.ZERO
        for value in values:
            total = LineItemBuilder.add_money(total, value)
        return total

    @staticmethod
    def final_amount(hours: Any, rate: Any, adjustment: Any = 0) -> Decimal:
        """Final pay for a line: hours x rate plus the manual adjustment."""
        return LineItemBuilder.add_money(
            LineItemBuilder.multiply_money(hours, rate),
            LineItemBuilder.round_to_cents(adjustment),
        )

    @staticmethod
    def create_assignment_line(
        teacher_id: UUID,
        assignment_id: UUID,
        description: str,
        hours: Decimal,
        rate: Decimal,
        rate_source: RateSource,
        enrollment_id: UUID | None = None,
        service_id: UUID | None = None,
        is_variable_hours: bool = False,
    ) -> LineCandidate:
        """Create a line from an assignment (actual hours default to calculated)."""
        hours = LineItemBuilder.round_hours(hours)
        rate = LineItemBuilder.round_to_cents(rate)
        amount = LineItemBuilder.multiply_money(hours, rate)
        return LineCandidate(
            teacher_id=teacher_id,
            teacher_assignment_id=assignment_id,
            enrollment_id=enrollment_id,
            service_id=service_id,
            description=description,
            calculated_hours=hours,
            actual_hours=hours,
            hourly_rate=rate,
            rate_source=rate_source,
            calculated_amount=amount,
            adjustment_amount=LineItemBuilder.ZERO,
            final_amount=amount,
            is_variable_hours=is_variable_hours,
        )

    @staticmethod
    def create_manual_line(
        teacher_id: UUID,
        description: str,
        hours: Any,
        hourly_rate: Any,
    ) -> LineCandidate:
        """Create a free-form line for one-off work (no assignment)."""
        hours = LineItemBuilder.round_hours(hours)
        rate = LineItemBuilder.round_to_cents(hourly_rate)

        if not description or not description.strip():
            raise ValidationError("Description is required")
        if hours <= 0:
            raise ValidationError("Hours must be greater than 0")
        if rate <= 0:
            raise ValidationError("Hourly rate must be greater than 0")

        amount = LineItemBuilder.multiply_money(hours, rate)
        return LineCandidate(
            teacher_id=teacher_id,
            description=description.strip(),
            calculated_hours=hours,
            actual_hours=hours,
            hourly_rate=rate,
            rate_source=RateSource.MANUAL,
            calculated_amount=amount,
            adjustment_amount=LineItemBuilder.ZERO,
            final_amount=amount,
        )

    @staticmethod
    def apply_hours(line: EditableLine, hours: Any) -> EditableLine:
        """Set actual hours and recompute the final amount with the line's own rate.

        ``calculated_amount`` keeps reflecting the scheduled hours.
        """
        hours = LineItemBuilder.round_hours(hours)
        if hours < 0:
            raise ValidationError("Hours cannot be negative")

        line.actual_hours = hours
        line.final_amount = LineItemBuilder.final_amount(
            hours, line.hourly_rate, line.adjustment_amount or 0
        )
        return line

    @staticmethod
    def apply_adjustment(line: EditableLine, adjustment: Any) -> EditableLine:
        """Set the manual delta and recompute the final amount."""
        line.adjustment_amount = LineItemBuilder.round_to_cents(adjustment)
        line.final_amount = LineItemBuilder.final_amount(
            line.actual_hours, line.hourly_rate, line.adjustment_amount
        )
        return line
