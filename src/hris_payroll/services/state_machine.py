"""Payroll and payroll-period state machines with transition validation."""

from __future__ import annotations

from enum import Enum

from hris_payroll.errors import StateConflictError


class PayrollStatus(str, Enum):
    """Payroll record status values."""

    DRAFT = "DRAFT"
    COMPUTED = "COMPUTED"
    APPROVED = "APPROVED"
    RELEASED = "RELEASED"
    VOIDED = "VOIDED"


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class InvalidTransitionError(StateConflictError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = str(getattr(from_status, "value", from_status))
        self.to_status = str(getattr(to_status, "value", to_status))
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, current_status=self.from_status, target_status=self.to_status)


class PayrollStateMachine:
    """State machine for payroll status transitions.

    Allowed transitions:
    - DRAFT → COMPUTED
    - COMPUTED → APPROVED
    - APPROVED → RELEASED
    - COMPUTED / APPROVED / RELEASED → VOIDED (reason required)

    Transitions only move forward; VOIDED is terminal.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollStatus.DRAFT: [PayrollStatus.COMPUTED],
        PayrollStatus.COMPUTED: [PayrollStatus.APPROVED, PayrollStatus.VOIDED],
        PayrollStatus.APPROVED: [PayrollStatus.RELEASED, PayrollStatus.VOIDED],
        PayrollStatus.RELEASED: [PayrollStatus.VOIDED],
        PayrollStatus.VOIDED: [],  # Terminal state
    }

    # Statuses whose line items may be replaced by a recompute
    RECOMPUTE_ALLOWED = {
        PayrollStatus.DRAFT,
        PayrollStatus.COMPUTED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(
        cls,
        from_status: str,
        to_status: str,
        reason: str | None = None,
    ) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)
        if to_status == PayrollStatus.VOIDED and not (reason and reason.strip()):
            raise InvalidTransitionError(from_status, to_status, "Void requires a reason")

    @classmethod
    def can_recompute(cls, status: str) -> bool:
        """Check if line items may be recomputed in this status."""
        return status in cls.RECOMPUTE_ALLOWED

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(status)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])


class PeriodStateMachine:
    """State machine for payroll period status transitions.

    Allowed transitions:
    - PENDING → PROCESSING, CANCELLED
    - PROCESSING → COMPLETED, CANCELLED
    - CANCELLED → PENDING (reopen)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PeriodStatus.PENDING: [PeriodStatus.PROCESSING, PeriodStatus.CANCELLED],
        PeriodStatus.PROCESSING: [PeriodStatus.COMPLETED, PeriodStatus.CANCELLED],
        PeriodStatus.COMPLETED: [],  # Terminal state
        PeriodStatus.CANCELLED: [PeriodStatus.PENDING],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        return cls.VALID_TRANSITIONS.get(current_status, [])
