"""Tests for payroll run state machine."""

from types import SimpleNamespace
from uuid import uuid4

import pytest

from backoffice_engine.exceptions import RunNotEditableError, ValidationError
from backoffice_engine.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    PayrollRunStatus,
)

ALL_STATUSES = [s.value for s in PayrollRunStatus]
ALLOWED = {("draft", "review"), ("review", "draft"), ("review", "approved"), ("approved", "paid")}


class TestPayrollRunStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # draft → review
        assert PayrollRunStateMachine.can_transition("draft", "review") is True

        # review → draft (send back)
        assert PayrollRunStateMachine.can_transition("review", "draft") is True

        # review → approved
        assert PayrollRunStateMachine.can_transition("review", "approved") is True

        # approved → paid
        assert PayrollRunStateMachine.can_transition("approved", "paid") is True

    @pytest.mark.parametrize("from_status", ALL_STATUSES)
    @pytest.mark.parametrize("to_status", ALL_STATUSES)
    def test_every_other_pair_is_rejected(self, from_status, to_status):
        expected = (from_status, to_status) in ALLOWED
        assert PayrollRunStateMachine.can_transition(from_status, to_status) is expected

    def test_validate_transition_raises(self):
        """Skipping review is not allowed."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            PayrollRunStateMachine.validate_transition("draft", PayrollRunStatus.APPROVED)

        assert exc_info.value.from_status == "draft"
        assert exc_info.value.to_status == "approved"

    def test_paid_is_terminal(self):
        assert PayrollRunStateMachine.get_next_statuses("paid") == []

    def test_line_items_editable_only_in_review(self):
        assert PayrollRunStateMachine.can_edit_line_items("review") is True
        for status in ("draft", "approved", "paid"):
            assert PayrollRunStateMachine.can_edit_line_items(status) is False

    def test_only_draft_can_be_deleted(self):
        assert PayrollRunStateMachine.can_delete("draft") is True
        assert PayrollRunStateMachine.can_delete("review") is False

    def test_is_send_back(self):
        assert PayrollRunStateMachine.is_send_back("review", "draft") is True
        assert PayrollRunStateMachine.is_send_back("draft", "review") is False

    @pytest.mark.parametrize("status", ["draft", "approved", "paid"])
    def test_require_editable_rejects_runs_outside_review(self, status):
        run = SimpleNamespace(id=uuid4(), status=status)

        with pytest.raises(ValidationError) as exc_info:
            PayrollRunStateMachine.require_editable(run)

        assert isinstance(exc_info.value, RunNotEditableError)
        assert exc_info.value.status == status
        assert "Invalid transition" not in str(exc_info.value)

    def test_require_editable_accepts_review(self):
        PayrollRunStateMachine.require_editable(SimpleNamespace(id=uuid4(), status="review"))
