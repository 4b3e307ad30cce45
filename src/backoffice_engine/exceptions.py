"""Domain errors shared by the payroll, enrollment and SMS code paths.

State machine violations are raised as
``backoffice_engine.services.state_machine.InvalidTransitionError``.
"""

from __future__ import annotations

from uuid import UUID


class ValidationError(Exception):
    """Raised for bad caller input (negative hours, blank description, ...)."""


class MissingRequiredFieldError(ValidationError):
    """Raised when template merge data lacks required fields."""

    def __init__(self, template_key: str, missing: list[str]):
        self.template_key = template_key
        self.missing = missing
        super().__init__(
            f"Template '{template_key}' is missing required field(s): {', '.join(missing)}"
        )


class RunNotEditableError(ValidationError):
    """Raised when line items are changed on a run that is not in review."""

    def __init__(self, run_id: UUID, status: str):
        self.run_id = run_id
        self.status = status
        super().__init__(
            f"Line items of payroll run {run_id} can only be changed while the run "
            f"is in review (current: {status})"
        )


class NotFoundError(Exception):
    """Raised when a referenced row does not exist."""

    def __init__(self, entity: str, entity_id: UUID | str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class StaleRunError(Exception):
    """Raised when a write carries an outdated payroll run version."""

    def __init__(self, run_id: UUID, expected: int, actual: int):
        self.run_id = run_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Payroll run {run_id} was modified concurrently "
            f"(expected version {expected}, found {actual})"
        )


class InconsistentStateError(Exception):
    """Raised when a compensating rollback itself failed.

    The data needs a manual check by an operator.
    """
