"""Scaling an assignment's weekly hours to a pay period."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Mapping

from backoffice_engine.calculators.line_builder import LineItemBuilder
from backoffice_engine.calculators.types import PeriodHours, Proration

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_WEEKDAY_ALIASES = {name[:3]: index for index, name in enumerate(WEEKDAY_NAMES)}


def effective_window(
    period_start: date,
    period_end: date,
    assignment_start: date | None,
    assignment_end: date | None,
) -> tuple[date, date] | None:
    """Intersection of the period and the assignment's active window.

    All bounds are inclusive; a missing assignment bound is open-ended.
    Returns None when they do not overlap.
    """
    start = assignment_start if assignment_start and assignment_start > period_start else period_start
    end = assignment_end if assignment_end and assignment_end < period_end else period_end
    if start > end:
        return None
    return start, end


def count_days(start: date, end: date) -> int:
    """Calendar days between two dates, inclusive."""
    return (end - start).days + 1


def count_weekdays(start: date, end: date) -> int:
    """Monday-Friday days between two dates, inclusive."""
    count = 0
    current = start
    while current <= end:
        if current.weekday() < 5:
            count += 1
        current += timedelta(days=1)
    return count


def normalize_schedule(schedule: Mapping[Any, Any]) -> dict[int, Decimal]:
    """Map a weekly schedule keyed by weekday name or index to {0..6: hours}."""
    normalized: dict[int, Decimal] = {}
    for key, hours in schedule.items():
        if isinstance(key, int):
            index = key
        else:
            key_str = str(key).strip().lower()
            if key_str.isdigit():
                index = int(key_str)
            elif key_str[:3] in _WEEKDAY_ALIASES:
                index = _WEEKDAY_ALIASES[key_str[:3]]
            else:
                raise ValueError(f"Unknown weekday in schedule: {key!r}")
        if not 0 <= index <= 6:
            raise ValueError(f"Weekday index out of range: {index}")
        normalized[index] = LineItemBuilder.to_decimal(hours or 0)
    return normalized


def scheduled_hours(schedule: Mapping[Any, Any], start: date, end: date) -> Decimal:
    """Sum the scheduled hours of every day in [start, end]."""
    by_day = normalize_schedule(schedule)
    total = Decimal("0")
    current = start
    while current <= end:
        total += by_day.get(current.weekday(), Decimal("0"))
        current += timedelta(days=1)
    return total


def calculate_period_hours(
    hours_per_week: Decimal | None,
    period_start: date,
    period_end: date,
    assignment_start: date | None = None,
    assignment_end: date | None = None,
    weekly_schedule: Mapping[Any, Any] | None = None,
    proration: Proration = Proration.CALENDAR,
) -> PeriodHours:
    """Hours owed for the overlap of an assignment with a pay period.

    An explicit weekly schedule wins over the weekly hours figure. With
    neither, the assignment is variable and yields 0 hours.
    """
    if not weekly_schedule and hours_per_week is None:
        return PeriodHours(hours=LineItemBuilder.ZERO, is_variable=True)

    window = effective_window(period_start, period_end, assignment_start, assignment_end)
    if window is None:
        return PeriodHours(hours=LineItemBuilder.ZERO)
    start, end = window

    if weekly_schedule:
        return PeriodHours(hours=LineItemBuilder.round_hours(scheduled_hours(weekly_schedule, start, end)))

    weekly = LineItemBuilder.to_decimal(hours_per_week)
    if Proration(proration) == Proration.WEEKDAY:
        hours = weekly / 5 * count_weekdays(start, end)
    else:
        hours = weekly / 7 * count_days(start, end)

    return PeriodHours(hours=LineItemBuilder.round_hours(hours))
