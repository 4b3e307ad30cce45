"""ORM models."""

from backoffice_engine.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from backoffice_engine.models.directory import (
    Enrollment,
    Family,
    Service,
    Student,
    Teacher,
    TeacherAssignment,
)
from backoffice_engine.models.payroll import PayrollAdjustment, PayrollLineItem, PayrollRun
from backoffice_engine.models.sms import SmsMessage

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Enrollment",
    "Family",
    "Service",
    "Student",
    "Teacher",
    "TeacherAssignment",
    "PayrollAdjustment",
    "PayrollLineItem",
    "PayrollRun",
    "SmsMessage",
]
