"""Timesheet and payroll services."""

from hrms_payroll.services.errors import (
    AuthorizationError,
    HRMSError,
    HRMSValidationError,
    NotFoundError,
    StateConflictError,
)
from hrms_payroll.services.state_machine import (
    PayrollPeriodStateMachine,
    PayrollPeriodStatus,
    TimesheetStateMachine,
    TimesheetStatus,
)

__all__ = [
    "HRMSError",
    "HRMSValidationError",
    "StateConflictError",
    "AuthorizationError",
    "NotFoundError",
    "TimesheetStateMachine",
    "TimesheetStatus",
    "PayrollPeriodStateMachine",
    "PayrollPeriodStatus",
]
