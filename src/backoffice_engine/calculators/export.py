"""CSV export of a payroll run for the bank's bulk-payment import."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from backoffice_engine.calculators.line_builder import LineItemBuilder


@dataclass(frozen=True)
class TeacherPayLine:
    """Minimal view of a line item needed for export."""

    teacher_id: UUID
    teacher_name: str | None
    final_amount: Decimal


def format_period_date(value: date) -> str:
    """``Jan 5, 2026`` style label."""
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def generate_payroll_csv(
    period_start: date,
    period_end: date,
    lines: Iterable[TeacherPayLine],
    company_name: str,
) -> str:
    """One row per teacher with a positive total, sorted by name."""
    totals: dict[UUID, Decimal] = {}
    names: dict[UUID, str] = {}
    for line in lines:
        totals[line.teacher_id] = LineItemBuilder.add_money(
            totals.get(line.teacher_id, 0), line.final_amount
        )
        names.setdefault(line.teacher_id, line.teacher_name or "Unknown Teacher")

    memo = (
        f"{company_name} Payroll "
        f"{format_period_date(period_start)} - {format_period_date(period_end)}"
    )

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Name", "Amount", "Memo"])
    rows = sorted(
        ((names[teacher_id], total) for teacher_id, total in totals.items() if total > 0),
        key=lambda row: row[0].lower(),
    )
    for name, total in rows:
        writer.writerow([name, f"{total:.2f}", memo])

    return buffer.getvalue()
