"""SQLAlchemy ORM models."""

from hrms_payroll.models.base import Base, TimestampMixin
from hrms_payroll.models.employee import BenefitDeduction, CompensationPlan, Employee
from hrms_payroll.models.payroll import (
    AuditEvent,
    ImmutableRecordError,
    PayrollPeriod,
    PayStub,
    PayStubLine,
)
from hrms_payroll.models.timekeeping import (
    DEFAULT_PROJECT,
    MANUAL_ENTRY_PREDICATE,
    OPEN_SESSION_PREDICATE,
    ClockSession,
    TimeEntry,
    Timesheet,
)

__all__ = [
    "Base",
    "TimestampMixin",
    # Directory backing
    "Employee",
    "CompensationPlan",
    "BenefitDeduction",
    # Timekeeping
    "ClockSession",
    "TimeEntry",
    "Timesheet",
    "DEFAULT_PROJECT",
    "OPEN_SESSION_PREDICATE",
    "MANUAL_ENTRY_PREDICATE",
    # Payroll
    "PayrollPeriod",
    "PayStub",
    "PayStubLine",
    "ImmutableRecordError",
    "AuditEvent",
]
