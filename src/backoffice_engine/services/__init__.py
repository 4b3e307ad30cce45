"""Back-office services."""

from backoffice_engine.services.enrollment_service import (
    EndEnrollmentResult,
    EnrollmentService,
    SqlEnrollmentRepository,
)
from backoffice_engine.services.notifications import PaymentNotificationDispatcher
from backoffice_engine.services.notifier import CollectingNotifier, LoggingNotifier, UserNotifier
from backoffice_engine.services.payroll_run_service import CreateRunResult, PayrollRunService
from backoffice_engine.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
)

__all__ = [
    "EndEnrollmentResult",
    "EnrollmentService",
    "SqlEnrollmentRepository",
    "PaymentNotificationDispatcher",
    "CollectingNotifier",
    "LoggingNotifier",
    "UserNotifier",
    "CreateRunResult",
    "PayrollRunService",
    "InvalidTransitionError",
    "PayrollRunStateMachine",
    "PayrollRunStatus",
]
