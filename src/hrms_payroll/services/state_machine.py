"""Timesheet and payroll period state machines with transition validation."""

from __future__ import annotations

from enum import Enum

from hrms_payroll.services.errors import InvalidTransitionError


class TimesheetStatus(str, Enum):
    """Timesheet status values."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class PayrollPeriodStatus(str, Enum):
    """Payroll period status values."""

    OPEN = "open"
    PROCESSING = "processing"
    CLOSED = "closed"


class TimesheetStateMachine:
    """State machine for timesheet status transitions.

    Allowed transitions:
    - draft → submitted
    - submitted → approved
    - submitted → rejected
    - rejected → submitted (resubmit)
    - rejected → draft (entry edited after rejection)
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[str, list[str]] = {
        TimesheetStatus.DRAFT.value: [TimesheetStatus.SUBMITTED.value],
        TimesheetStatus.SUBMITTED.value: [
            TimesheetStatus.APPROVED.value,
            TimesheetStatus.REJECTED.value,
        ],
        TimesheetStatus.REJECTED.value: [
            TimesheetStatus.SUBMITTED.value,
            TimesheetStatus.DRAFT.value,
        ],
        TimesheetStatus.APPROVED.value: [],  # Terminal state
    }

    # Statuses where the week's time entries can be modified
    ENTRIES_MUTABLE = {
        TimesheetStatus.DRAFT.value,
        TimesheetStatus.REJECTED.value,
    }

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
    def can_modify_entries(cls, status: str | None) -> bool:
        """Check if entries in a week with this timesheet status can change.

        A week with no timesheet yet is editable.
        """
        return status is None or status in cls.ENTRIES_MUTABLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])


class PayrollPeriodStateMachine:
    """State machine for payroll period processing.

    Allowed transitions:
    - open → processing (run starts, lease taken)
    - processing → closed (run finished)
    - processing → open (run aborted)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollPeriodStatus.OPEN.value: [PayrollPeriodStatus.PROCESSING.value],
        PayrollPeriodStatus.PROCESSING.value: [
            PayrollPeriodStatus.CLOSED.value,
            PayrollPeriodStatus.OPEN.value,
        ],
        PayrollPeriodStatus.CLOSED.value: [],  # Terminal state
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)
