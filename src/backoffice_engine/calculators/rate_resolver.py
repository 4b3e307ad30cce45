"""Hourly rate resolution with tiered precedence."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from backoffice_engine.calculators.line_builder import LineItemBuilder
from backoffice_engine.calculators.types import AssignmentInput, RateResolution, RateSource


class RateResolver:
    """Resolves the hourly rate paid for an assignment.

    Rate selection priority:
    1. Assignment-level hourly_rate_teacher
    2. Service-level default_teacher_rate (enrollment's service, else the
       assignment's own service)
    3. Teacher-level default_hourly_rate

    A tier counts only when it is set and greater than zero. When no tier
    applies the rate is 0.00, attributed to the teacher tier so the line
    stays auditable and can be fixed by editing the teacher.
    """

    @staticmethod
    def is_present(rate: Any) -> bool:
        return rate is not None and LineItemBuilder.to_decimal(rate) > 0

    @classmethod
    def resolve(
        cls,
        assignment_rate: Decimal | None,
        service_rate: Decimal | None,
        teacher_rate: Decimal | None,
    ) -> RateResolution:
        """Pick the first present tier."""
        tiers = (
            (assignment_rate, RateSource.ASSIGNMENT),
            (service_rate, RateSource.SERVICE),
            (teacher_rate, RateSource.TEACHER),
        )
        for rate, source in tiers:
            if cls.is_present(rate):
                return RateResolution(
                    rate=LineItemBuilder.round_to_cents(rate),
                    source=source,
                )

        return RateResolution(rate=LineItemBuilder.ZERO, source=RateSource.TEACHER)

    @classmethod
    def resolve_for_assignment(cls, assignment: AssignmentInput) -> RateResolution:
        """Resolve the rate for an assignment snapshot."""
        return cls.resolve(
            assignment.hourly_rate_teacher,
            assignment.service_default_rate,
            assignment.teacher_default_rate,
        )
