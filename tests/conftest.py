"""Pytest fixtures for back-office engine tests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from backoffice_engine.database import make_session_factory
from backoffice_engine.models import (
    Base,
    Enrollment,
    Family,
    Service,
    Student,
    Teacher,
    TeacherAssignment,
)

# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite://"

# Two full weeks, Monday to Sunday
PERIOD_START = date(2026, 1, 5)
PERIOD_END = date(2026, 1, 18)


@pytest_asyncio.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@dataclass
class PayrollData:
    """Ids of the seeded directory rows."""

    alice_id: UUID  # has email; assignment rate
    bob_id: UUID  # no email; falls back to teacher rate
    carol_id: UUID  # service-level, variable hours
    tutoring_id: UUID
    pod_id: UUID
    smith_family_id: UUID
    sam_enrollment_id: UUID
    jo_enrollment_id: UUID
    alice_assignment_id: UUID
    bob_assignment_id: UUID
    carol_assignment_id: UUID
    inactive_assignment_id: UUID


@pytest_asyncio.fixture
async def payroll_data(session: AsyncSession) -> PayrollData:
    """Seed teachers, services, enrollments and assignments.

    For PERIOD_START..PERIOD_END (calendar proration) this yields:
    - Alice: 10.00 h x 50.00 (assignment) = 500.00, "Sam Smith - Tutoring"
    - Bob: 6.00 h x 25.00 (teacher) = 150.00, "Jo Smith - Learning Pod"
    - Carol: variable, 0.00 h x 40.00 (service) = 0.00, "Tutoring"
    """
    family = Family(
        display_name="Smith Family",
        primary_email="smiths@example.com",
        primary_phone="(555) 234-5678",
    )
    sam = Student(full_name="Sam Smith", family=family)
    jo = Student(full_name="Jo Smith", family=family)

    alice = Teacher(display_name="Alice Adams", email="alice@example.com", default_hourly_rate=Decimal("30.00"))
    bob = Teacher(display_name="Bob Brown", email=None, default_hourly_rate=Decimal("25.00"))
    carol = Teacher(display_name="Carol Chen", email="carol@example.com", default_hourly_rate=None)

    tutoring = Service(name="Tutoring", default_teacher_rate=Decimal("40.00"))
    pod = Service(name="Learning Pod", default_teacher_rate=None)

    sam_enrollment = Enrollment(
        student=sam, family_id=None, service=tutoring, status="active", start_date=date(2025, 9, 1)
    )
    jo_enrollment = Enrollment(
        student=jo, family_id=None, service=pod, status="active", start_date=date(2025, 9, 1)
    )

    alice_assignment = TeacherAssignment(
        teacher=alice,
        enrollment=sam_enrollment,
        hourly_rate_teacher=Decimal("50.00"),
        hours_per_week=Decimal("5"),
    )
    bob_assignment = TeacherAssignment(
        teacher=bob,
        enrollment=jo_enrollment,
        hours_per_week=Decimal("3"),
    )
    carol_assignment = TeacherAssignment(
        teacher=carol,
        service=tutoring,
        hours_per_week=None,
    )
    inactive_assignment = TeacherAssignment(
        teacher=alice,
        enrollment=jo_enrollment,
        hours_per_week=Decimal("10"),
        is_active=False,
    )

    session.add_all(
        [
            family,
            alice,
            bob,
            carol,
            tutoring,
            pod,
            sam_enrollment,
            jo_enrollment,
            alice_assignment,
            bob_assignment,
            carol_assignment,
            inactive_assignment,
        ]
    )
    await session.flush()
    sam_enrollment.family_id = family.id
    jo_enrollment.family_id = family.id
    await session.commit()

    return PayrollData(
        alice_id=alice.id,
        bob_id=bob.id,
        carol_id=carol.id,
        tutoring_id=tutoring.id,
        pod_id=pod.id,
        smith_family_id=family.id,
        sam_enrollment_id=sam_enrollment.id,
        jo_enrollment_id=jo_enrollment.id,
        alice_assignment_id=alice_assignment.id,
        bob_assignment_id=bob_assignment.id,
        carol_assignment_id=carol_assignment.id,
        inactive_assignment_id=inactive_assignment.id,
    )
