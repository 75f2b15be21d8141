"""Domain error hierarchy.

Every error carries a stable ``code`` and a ``context`` dict so the API layer
can map it to an ``ErrorResponse`` without inspecting messages. The four
families map to HTTP 422 (validation), 409 (state conflict), 403
(authorization) and 404 (not found).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from hrms_payroll.models.payroll import ImmutableRecordError


class HRMSError(Exception):
    """Base class for all domain errors."""

    code = "HRMS_ERROR"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = {k: _jsonable(v) for k, v in context.items()}
        super().__init__(message)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (UUID, date, Decimal)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


# ===== Validation =====


class HRMSValidationError(HRMSError):
    code = "VALIDATION_ERROR"


class InvalidHoursError(HRMSValidationError):
    code = "INVALID_HOURS"


class InvalidOrderError(HRMSValidationError):
    """Clock-out earlier than clock-in."""

    code = "INVALID_ORDER"


class EmptyTimesheetError(HRMSValidationError):
    code = "EMPTY_TIMESHEET"

    def __init__(self, timesheet_id: UUID):
        super().__init__(
            f"Timesheet {timesheet_id} has no hours and cannot be submitted",
            timesheet_id=timesheet_id,
        )


class InvalidEntryTypeError(HRMSValidationError):
    code = "INVALID_ENTRY_TYPE"

    def __init__(self, entry_type: str):
        super().__init__(f"Unknown entry type '{entry_type}'", entry_type=entry_type)


class MissingReasonError(HRMSValidationError):
    code = "MISSING_REASON"

    def __init__(self) -> None:
        super().__init__("A rejection reason is required")


class BulkValidationError(HRMSValidationError):
    """Raised when any item of a bulk write fails validation; nothing is written."""

    code = "BULK_VALIDATION_FAILED"

    def __init__(self, failures: list[tuple[int, str]]):
        self.failures = failures
        super().__init__(
            f"{len(failures)} entr{'y' if len(failures) == 1 else 'ies'} failed validation",
            failures=[{"index": index, "reason": reason} for index, reason in failures],
        )


# ===== State conflicts =====


class StateConflictError(HRMSError):
    code = "STATE_CONFLICT"


class InvalidTransitionError(StateConflictError):
    """Raised when an invalid status transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, from_status=from_status, to_status=to_status)


class TimesheetLockedError(StateConflictError):
    code = "TIMESHEET_LOCKED"

    def __init__(self, employee_id: UUID, week_start: date, status: str):
        self.status = status
        super().__init__(
            f"Week of {week_start} is {status} and cannot be edited",
            employee_id=employee_id,
            week_start=week_start,
            status=status,
        )


class AlreadyClockedInError(StateConflictError):
    code = "ALREADY_CLOCKED_IN"

    def __init__(self, employee_id: UUID):
        super().__init__(
            f"Employee {employee_id} already has an open clock session",
            employee_id=employee_id,
        )


class NoOpenSessionError(StateConflictError):
    code = "NO_OPEN_SESSION"

    def __init__(self, employee_id: UUID, session_id: UUID | None = None):
        super().__init__(
            "No matching open clock session",
            employee_id=employee_id,
            session_id=session_id,
        )


class OpenClockSessionError(StateConflictError):
    """A week cannot be submitted while one of its clock sessions is open."""

    code = "OPEN_CLOCK_SESSION"

    def __init__(self, employee_id: UUID, session_id: UUID, week_start: date):
        super().__init__(
            f"Clock out of session {session_id} before submitting the week of {week_start}",
            employee_id=employee_id,
            session_id=session_id,
            week_start=week_start,
        )


class PeriodNotOpenError(StateConflictError):
    code = "PERIOD_NOT_OPEN"

    def __init__(self, period_id: UUID, status: str):
        self.status = status
        super().__init__(
            f"Payroll period {period_id} is {status}, not open",
            period_id=period_id,
            status=status,
        )


class AlreadyProcessingError(StateConflictError):
    code = "ALREADY_PROCESSING"

    def __init__(self, period_id: UUID):
        super().__init__(
            f"Payroll period {period_id} is already being processed",
            period_id=period_id,
        )


class CompensationNotFoundError(StateConflictError):
    """No active compensation plan for an employee on a date."""

    code = "COMPENSATION_NOT_FOUND"

    def __init__(self, employee_id: UUID, as_of_date: date):
        self.employee_id = employee_id
        self.as_of_date = as_of_date
        super().__init__(
            f"No active compensation for employee {employee_id} on {as_of_date}",
            employee_id=employee_id,
            as_of_date=as_of_date,
        )


# ===== Authorization =====


class AuthorizationError(HRMSError):
    code = "FORBIDDEN"


class NotOwnerError(AuthorizationError):
    code = "NOT_OWNER"

    def __init__(self, employee_id: UUID, resource: str):
        super().__init__(
            f"Employee {employee_id} does not own this {resource}",
            employee_id=employee_id,
        )


class NotAuthorizedError(AuthorizationError):
    code = "NOT_AUTHORIZED"


# ===== Not found =====


class NotFoundError(HRMSError):
    code = "NOT_FOUND"
    entity = "Resource"

    def __init__(self, entity_id: Any):
        super().__init__(f"{self.entity} {entity_id} not found", entity_id=entity_id)


class TimesheetNotFoundError(NotFoundError):
    code = "TIMESHEET_NOT_FOUND"
    entity = "Timesheet"


class EntryNotFoundError(NotFoundError):
    code = "ENTRY_NOT_FOUND"
    entity = "Time entry"


class PayrollPeriodNotFoundError(NotFoundError):
    code = "PAYROLL_PERIOD_NOT_FOUND"
    entity = "Payroll period"


class PayStubNotFoundError(NotFoundError):
    code = "PAY_STUB_NOT_FOUND"
    entity = "Pay stub"


class ClockSessionNotFoundError(NotFoundError):
    code = "CLOCK_SESSION_NOT_FOUND"
    entity = "Clock session"


__all__ = [
    "HRMSError",
    "HRMSValidationError",
    "InvalidHoursError",
    "InvalidOrderError",
    "EmptyTimesheetError",
    "InvalidEntryTypeError",
    "MissingReasonError",
    "BulkValidationError",
    "StateConflictError",
    "InvalidTransitionError",
    "TimesheetLockedError",
    "AlreadyClockedInError",
    "NoOpenSessionError",
    "OpenClockSessionError",
    "PeriodNotOpenError",
    "AlreadyProcessingError",
    "CompensationNotFoundError",
    "AuthorizationError",
    "NotOwnerError",
    "NotAuthorizedError",
    "NotFoundError",
    "TimesheetNotFoundError",
    "EntryNotFoundError",
    "PayrollPeriodNotFoundError",
    "PayStubNotFoundError",
    "ClockSessionNotFoundError",
    "ImmutableRecordError",
]
