"""Ending an enrollment and its teacher assignments as one compensated operation.

The two writes are committed separately, so a failure in the second step
is undone by one compensating write that restores the enrollment. There
are no retries: if the compensation fails too, the caller gets an
InconsistentStateError and an operator has to look at the data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Protocol
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice_engine.exceptions import InconsistentStateError, NotFoundError
from backoffice_engine.models import Enrollment, TeacherAssignment
from backoffice_engine.services.notifier import LoggingNotifier, UserNotifier

logger = logging.getLogger(__name__)

ENDED = "ended"

ROLLED_BACK_MESSAGE = (
    "Failed to end teacher assignments. Enrollment has been restored to its original state."
)
INCONSISTENT_MESSAGE = (
    "Failed to end teacher assignments. Enrollment status may be inconsistent - "
    "manual check required."
)


@dataclass(frozen=True)
class EnrollmentState:
    """The fields the saga changes and may have to restore."""

    status: str
    end_date: date | None


@dataclass
class EndEnrollmentResult:
    """Outcome of ending an enrollment."""

    enrollment_id: UUID
    ended: bool
    rolled_back: bool = False
    assignments_ended: int = 0
    warnings: list[str] = field(default_factory=list)


class EnrollmentRepository(Protocol):
    """Persistence steps used by the saga; each call is its own commit."""

    async def get_state(self, enrollment_id: UUID) -> EnrollmentState | None:
        ...

    async def set_state(self, enrollment_id: UUID, state: EnrollmentState) -> None:
        ...

    async def end_active_assignments(self, enrollment_id: UUID, end_date: date) -> int:
        ...


class SqlEnrollmentRepository:
    """EnrollmentRepository backed by an AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_state(self, enrollment_id: UUID) -> EnrollmentState | None:
        result = await self.session.execute(
            select(Enrollment.status, Enrollment.end_date).where(Enrollment.id == enrollment_id)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return EnrollmentState(status=row.status, end_date=row.end_date)

    async def set_state(self, enrollment_id: UUID, state: EnrollmentState) -> None:
        try:
            await self.session.execute(
                update(Enrollment)
                .where(Enrollment.id == enrollment_id)
                .values(status=state.status, end_date=state.end_date)
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def end_active_assignments(self, enrollment_id: UUID, end_date: date) -> int:
        try:
            result = await self.session.execute(
                update(TeacherAssignment)
                .where(
                    TeacherAssignment.enrollment_id == enrollment_id,
                    TeacherAssignment.is_active.is_(True),
                )
                .values(is_active=False, end_date=end_date)
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return result.rowcount or 0


class EnrollmentService:
    """Enrollment operations that span more than one write."""

    def __init__(
        self,
        repository: EnrollmentRepository,
        notifier: UserNotifier | None = None,
    ):
        self.repository = repository
        self.notifier = notifier or LoggingNotifier()

    @classmethod
    def for_session(
        cls, session: AsyncSession, notifier: UserNotifier | None = None
    ) -> EnrollmentService:
        return cls(SqlEnrollmentRepository(session), notifier)

    async def end_enrollment(self, enrollment_id: UUID, end_date: date) -> EndEnrollmentResult:
        """End an enrollment and every active assignment on it.

        Steps:
        1. Set status=ended and end_date on the enrollment
        2. Deactivate its active teacher assignments

        A failure in step 1 propagates unchanged. A failure in step 2
        triggers exactly one restore of the step 1 values.
        """
        previous = await self.repository.get_state(enrollment_id)
        if previous is None:
            raise NotFoundError("Enrollment", enrollment_id)

        await self.repository.set_state(
            enrollment_id, EnrollmentState(status=ENDED, end_date=end_date)
        )

        try:
            count = await self.repository.end_active_assignments(enrollment_id, end_date)
        except Exception as exc:
            logger.exception("Ending assignments for enrollment %s failed", enrollment_id)
            return await self._compensate(enrollment_id, previous, exc)

        message = f"Enrollment ended; {count} teacher assignment(s) ended"
        logger.info("Enrollment %s: %s", enrollment_id, message)
        self.notifier.notify_success(message)
        return EndEnrollmentResult(
            enrollment_id=enrollment_id,
            ended=True,
            assignments_ended=count,
        )

    async def _compensate(
        self,
        enrollment_id: UUID,
        previous: EnrollmentState,
        cause: Exception,
    ) -> EndEnrollmentResult:
        try:
            await self.repository.set_state(enrollment_id, previous)
        except Exception as rollback_exc:
            logger.critical(
                "Enrollment %s: restoring status %r failed after %r",
                enrollment_id,
                previous.status,
                cause,
                exc_info=rollback_exc,
            )
            self.notifier.notify_error(INCONSISTENT_MESSAGE)
            raise InconsistentStateError(INCONSISTENT_MESSAGE) from rollback_exc

        logger.warning("Enrollment %s restored to status %r", enrollment_id, previous.status)
        self.notifier.notify_error(ROLLED_BACK_MESSAGE)
        return EndEnrollmentResult(
            enrollment_id=enrollment_id,
            ended=False,
            rolled_back=True,
            warnings=[ROLLED_BACK_MESSAGE],
        )
