"""Families, students, teachers, services, enrollments and assignments."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice_engine.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Family(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A customer household; SMS outreach targets its primary phone."""

    __tablename__ = "families"

    display_name: Mapped[str] = mapped_column(String, nullable=False)
    primary_email: Mapped[str | None] = mapped_column(String, nullable=True)
    primary_phone: Mapped[str | None] = mapped_column(String, nullable=True)
    sms_opt_out: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    students: Mapped[list[Student]] = relationship(back_populates="family")


class Student(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Student belonging to a family."""

    __tablename__ = "students"

    family_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("families.id", ondelete="SET NULL"),
        nullable=True,
    )
    full_name: Mapped[str] = mapped_column(String, nullable=False)

    family: Mapped[Family | None] = relationship(back_populates="students")


class Teacher(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Teacher paid through payroll runs."""

    __tablename__ = "teachers"

    display_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    default_hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")


class Service(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A billable service (tutoring, learning pod, ...)."""

    __tablename__ = "services"

    name: Mapped[str] = mapped_column(String, nullable=False)
    default_teacher_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)


class Enrollment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A student's enrollment in a service."""

    __tablename__ = "enrollments"

    student_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("students.id", ondelete="SET NULL"),
        nullable=True,
    )
    family_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("families.id", ondelete="SET NULL"),
        nullable=True,
    )
    service_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("services.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('trial', 'active', 'paused', 'ended')",
            name="enrollment_status_check",
        ),
    )

    student: Mapped[Student | None] = relationship()
    service: Mapped[Service | None] = relationship()
    assignments: Mapped[list[TeacherAssignment]] = relationship(back_populates="enrollment")


class TeacherAssignment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Links a teacher to an enrollment or directly to a service."""

    __tablename__ = "teacher_assignments"

    teacher_id: Mapped[UUID] = mapped_column(
        ForeignKey("teachers.id", ondelete="CASCADE"),
        nullable=False,
    )
    enrollment_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("enrollments.id", ondelete="CASCADE"),
        nullable=True,
    )
    service_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("services.id", ondelete="SET NULL"),
        nullable=True,
    )
    hourly_rate_teacher: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    hours_per_week: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    weekly_schedule: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "end_date IS NULL OR start_date IS NULL OR end_date >= start_date",
            name="teacher_assignment_dates_check",
        ),
    )

    teacher: Mapped[Teacher] = relationship()
    service: Mapped[Service | None] = relationship()
    enrollment: Mapped[Enrollment | None] = relationship(back_populates="assignments")
