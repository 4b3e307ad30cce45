"""Default pay period derivation."""

from __future__ import annotations

from datetime import date, timedelta

# Bi-weekly periods alternate relative to this Monday.
EPOCH_MONDAY = date(2024, 1, 1)
PERIOD_DAYS = 14


def default_biweekly_period(today: date | None = None) -> tuple[date, date]:
    """Return the Monday-to-Sunday two-week period containing ``today``.

    Odd weeks (counted from EPOCH_MONDAY) are the second half of a period,
    so the start moves back one more week.
    """
    today = today or date.today()
    monday = today - timedelta(days=today.weekday())

    week_number = (monday - EPOCH_MONDAY).days // 7
    if week_number % 2 == 1:
        monday -= timedelta(days=7)

    return monday, monday + timedelta(days=PERIOD_DAYS - 1)
