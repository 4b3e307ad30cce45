"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from backoffice_engine.exceptions import RunNotEditableError

if TYPE_CHECKING:
    from backoffice_engine.models import PayrollRun


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "draft"
    REVIEW = "review"
    APPROVED = "approved"
    PAID = "paid"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = str(getattr(from_status, "value", from_status))
        self.to_status = str(getattr(to_status, "value", to_status))
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - draft → review
    - review → draft (send back)
    - review → approved
    - approved → paid
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.DRAFT: [PayrollRunStatus.REVIEW],
        PayrollRunStatus.REVIEW: [PayrollRunStatus.DRAFT, PayrollRunStatus.APPROVED],
        PayrollRunStatus.APPROVED: [PayrollRunStatus.PAID],
        PayrollRunStatus.PAID: [],  # Terminal state
    }

    # Statuses where line items (hours, adjustments, manual items) can change
    LINE_ITEMS_EDITABLE = {PayrollRunStatus.REVIEW}

    # Statuses where the whole run may be deleted
    DELETABLE = {PayrollRunStatus.DRAFT}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_edit_line_items(cls, status: str) -> bool:
        return status in cls.LINE_ITEMS_EDITABLE

    @classmethod
    def can_delete(cls, status: str) -> bool:
        return status in cls.DELETABLE

    @classmethod
    def is_send_back(cls, from_status: str, to_status: str) -> bool:
        """Check if this transition returns a run from review to draft."""
        return from_status == PayrollRunStatus.REVIEW and to_status == PayrollRunStatus.DRAFT

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def require_editable(cls, run: PayrollRun) -> None:
        """Raise unless the run's line items may be edited."""
        if not cls.can_edit_line_items(run.status):
            raise RunNotEditableError(run.id, str(getattr(run.status, "value", run.status)))
