"""Per-teacher payment notifications sent when a payroll run is paid.

Delivery is fire-and-forget: ``dispatch`` schedules the POSTs as a
detached task and returns at once. A failed POST is logged and does not
affect the run, which is already committed as paid.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

import httpx

from backoffice_engine.calculators.line_builder import LineItemBuilder
from backoffice_engine.models import PayrollLineItem, PayrollRun

logger = logging.getLogger(__name__)

PAYMENT_METHOD = "Bulk Payroll"


@dataclass
class TeacherPayment:
    """Everything one teacher's notification needs."""

    teacher_id: UUID
    name: str
    email: str
    total: Decimal = Decimal("0.00")
    hours: Decimal = Decimal("0.00")
    line_items: list[dict[str, Any]] = field(default_factory=list)


def describe_student(line: PayrollLineItem) -> str:
    if line.is_manual:
        return "Miscellaneous"
    if line.enrollment is None or line.enrollment.student is None:
        return "Service Assignment"
    return line.enrollment.student.full_name


def group_by_teacher(lines: Iterable[PayrollLineItem]) -> list[TeacherPayment]:
    """Group paid line items per teacher, dropping teachers without an email.

    Lines must have ``teacher``, ``service`` and ``enrollment.student`` loaded.
    """
    payments: dict[UUID, TeacherPayment] = {}
    for line in lines:
        teacher = line.teacher
        if teacher is None or not teacher.email:
            continue
        payment = payments.get(teacher.id)
        if payment is None:
            payment = TeacherPayment(
                teacher_id=teacher.id,
                name=teacher.display_name,
                email=teacher.email,
            )
            payments[teacher.id] = payment

        payment.total = LineItemBuilder.add_money(payment.total, line.final_amount)
        payment.hours = LineItemBuilder.add_money(payment.hours, line.actual_hours)
        payment.line_items.append(
            {
                "student": describe_student(line),
                "service": line.service.name if line.service else line.description,
                "hours": float(line.actual_hours),
                "rate": float(line.hourly_rate),
                "amount": float(line.final_amount),
            }
        )
    return list(payments.values())


def build_payment_payload(
    run: PayrollRun,
    payment: TeacherPayment,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """JSON body POSTed to the payment webhook for one teacher."""
    timestamp = timestamp or datetime.now(timezone.utc)
    return {
        "payment_id": f"bulk-{run.id}-{payment.teacher_id}",
        "teacher": {
            "id": str(payment.teacher_id),
            "name": payment.name,
            "email": payment.email,
        },
        "amounts": {
            "total": float(payment.total),
            "hours": float(payment.hours),
        },
        "period": {
            "start": run.period_start.isoformat(),
            "end": run.period_end.isoformat(),
        },
        "line_items": payment.line_items,
        "payment_method": PAYMENT_METHOD,
        "timestamp": timestamp.isoformat(),
    }


class PaymentNotificationDispatcher:
    """Posts payment notifications in the background.

    Usage:
        dispatcher = PaymentNotificationDispatcher(webhook_url)
        dispatcher.dispatch(run, line_items)   # returns immediately
        await dispatcher.drain()               # on shutdown / in tests
    """

    def __init__(
        self,
        webhook_url: str | None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._transport = transport
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, run: PayrollRun, lines: Iterable[PayrollLineItem]) -> asyncio.Task[None] | None:
        """Schedule notifications for every teacher paid by ``run``.

        Payloads are built before returning so the task never touches the
        ORM session.
        """
        payloads = [build_payment_payload(run, p) for p in group_by_teacher(lines)]
        if not payloads:
            logger.info("Payroll run %s paid; no teachers with an email to notify", run.id)
            return None
        if not self.webhook_url:
            logger.warning(
                "Payroll run %s paid; PAYROLL_WEBHOOK_URL not set, skipping %d notification(s)",
                run.id,
                len(payloads),
            )
            return None

        task = asyncio.create_task(self._send_all(run.id, payloads))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled notification task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _send_all(self, run_id: UUID, payloads: list[dict[str, Any]]) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            results = await asyncio.gather(
                *(self._send_one(client, payload) for payload in payloads),
                return_exceptions=True,
            )
        delivered = sum(1 for result in results if result is True)
        logger.info(
            "Payroll run %s: %d of %d payment notification(s) delivered",
            run_id,
            delivered,
            len(payloads),
        )

    async def _send_one(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> bool:
        try:
            response = await client.post(self.webhook_url, json=payload)
            response.raise_for_status()
        except Exception:
            logger.exception(
                "Payment notification %s for %s failed",
                payload["payment_id"],
                payload["teacher"]["email"],
            )
            return False
        return True
