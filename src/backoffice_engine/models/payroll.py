"""Payroll run, line item and carry-forward adjustment models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice_engine.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from backoffice_engine.models.directory import Enrollment, Service, Teacher


class PayrollRun(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """One payroll batch for a pay period."""

    __tablename__ = "payroll_run"

    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    total_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    total_calculated: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_adjusted: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    teacher_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Bumped on every write; callers may pass it back to reject stale edits
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'review', 'approved', 'paid')",
            name="payroll_run_status_check",
        ),
        CheckConstraint("period_end >= period_start", name="payroll_run_dates_check"),
    )

    line_items: Mapped[list[PayrollLineItem]] = relationship(
        back_populates="payroll_run",
        cascade="all, delete-orphan",
        order_by="PayrollLineItem.created_at",
    )


class PayrollLineItem(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """One payable unit (assignment-based or manual) within a run."""

    __tablename__ = "payroll_line_item"

    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.id", ondelete="CASCADE"),
        nullable=False,
    )
    teacher_id: Mapped[UUID] = mapped_column(
        ForeignKey("teachers.id", ondelete="CASCADE"),
        nullable=False,
    )
    # NULL marks a manual line item
    teacher_assignment_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("teacher_assignments.id", ondelete="SET NULL"),
        nullable=True,
    )
    enrollment_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("enrollments.id", ondelete="SET NULL"),
        nullable=True,
    )
    service_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("services.id", ondelete="SET NULL"),
        nullable=True,
    )
    description: Mapped[str] = mapped_column(String, nullable=False)

    calculated_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    actual_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    rate_source: Mapped[str] = mapped_column(String, nullable=False)
    calculated_amount: Mapped[Decimal] = mapped_column(nullable=False)
    adjustment_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    adjustment_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    final_amount: Mapped[Decimal] = mapped_column(nullable=False)
    is_variable_hours: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("actual_hours >= 0", name="payroll_line_item_hours_check"),
        CheckConstraint(
            "rate_source IN ('assignment', 'service', 'teacher', 'manual')",
            name="payroll_line_item_rate_source_check",
        ),
    )

    payroll_run: Mapped[PayrollRun] = relationship(back_populates="line_items")
    teacher: Mapped[Teacher] = relationship()
    service: Mapped[Service | None] = relationship()
    enrollment: Mapped[Enrollment | None] = relationship()

    @property
    def is_manual(self) -> bool:
        return self.teacher_assignment_id is None

    @property
    def teacher_name(self) -> str | None:
        """Requires the teacher relationship to be loaded."""
        return self.teacher.display_name if self.teacher else None


class PayrollAdjustment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Carry-forward amount applied to a teacher's next payroll run."""

    __tablename__ = "payroll_adjustment"

    teacher_id: Mapped[UUID] = mapped_column(
        ForeignKey("teachers.id", ondelete="CASCADE"),
        nullable=False,
    )
    source_payroll_run_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_run.id", ondelete="SET NULL"),
        nullable=True,
    )
    # NULL until linked to a run
    target_payroll_run_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_run.id", ondelete="SET NULL"),
        nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)

    teacher: Mapped[Teacher] = relationship()
