"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from hrms_payroll.models import DEFAULT_PROJECT


# ============================================================================
# Clock schemas
# ============================================================================


class ClockInRequest(BaseModel):
    """Schema for opening a clock session."""

    at: datetime | None = None
    notes: str | None = None


class ClockOutRequest(BaseModel):
    """Schema for closing a clock session."""

    session_id: UUID
    at: datetime | None = None
    break_minutes: int = Field(default=0, ge=0)
    notes: str | None = None


class ClockSessionResponse(BaseModel):
    """Schema for clock session response."""

    model_config = ConfigDict(from_attributes=True)

    clock_session_id: UUID
    employee_id: UUID
    clock_in: datetime
    clock_out: datetime | None = None
    break_minutes: int
    total_hours: Decimal | None = None
    status: str
    notes: str | None = None


# ============================================================================
# Time entry schemas
# ============================================================================


class TimeEntryUpsert(BaseModel):
    """Schema for creating or replacing a manual time entry."""

    work_date: date
    hours: Decimal
    project_id: str = DEFAULT_PROJECT
    entry_type: str = "regular"
    notes: str | None = None


class BulkTimeEntryRequest(BaseModel):
    """Schema for an all-or-nothing batch of manual entries."""

    entries: list[TimeEntryUpsert] = Field(min_length=1)


class TimeEntryResponse(BaseModel):
    """Schema for time entry response."""

    model_config = ConfigDict(from_attributes=True)

    time_entry_id: UUID
    employee_id: UUID
    work_date: date
    project_id: str
    hours: Decimal
    entry_type: str
    notes: str | None = None
    source: str
    clock_session_id: UUID | None = None


class TimeEntryListResponse(BaseModel):
    items: list[TimeEntryResponse]
    total: int


class HoursSummaryResponse(BaseModel):
    """Schema for an employee's hours over a date range."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    start_date: date
    end_date: date
    regular: Decimal
    overtime: Decimal
    pto: Decimal
    total: Decimal
    entry_count: int


# ============================================================================
# Timesheet schemas
# ============================================================================


class TimesheetResponse(BaseModel):
    """Schema for timesheet response."""

    model_config = ConfigDict(from_attributes=True)

    timesheet_id: UUID
    employee_id: UUID
    week_start: date
    week_end: date
    status: str
    total_hours: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    pto_hours: Decimal
    submitted_at: datetime | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None


class TimesheetDetailResponse(TimesheetResponse):
    """Timesheet with the entries dated inside its week."""

    entries: list[TimeEntryResponse] = []


class TimesheetListResponse(BaseModel):
    items: list[TimesheetResponse]
    total: int


class RejectRequest(BaseModel):
    """Schema for rejecting a timesheet."""

    reason: str = ""


# ============================================================================
# Payroll schemas
# ============================================================================


class PayrollPeriodCreate(BaseModel):
    """Schema for creating a payroll period."""

    start_date: date
    end_date: date
    pay_date: date


class PayrollPeriodResponse(BaseModel):
    """Schema for payroll period response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: UUID
    start_date: date
    end_date: date
    pay_date: date
    status: str
    processed_by: UUID | None = None
    processed_at: datetime | None = None
    processing_started_at: datetime | None = None


class PayStubLineResponse(BaseModel):
    """Schema for pay stub line response."""

    model_config = ConfigDict(from_attributes=True)

    sequence: int
    category: str
    code: str
    description: str
    hours: Decimal | None = None
    rate: Decimal | None = None
    amount: Decimal


class PayStubResponse(BaseModel):
    """Schema for pay stub response."""

    model_config = ConfigDict(from_attributes=True)

    pay_stub_id: UUID
    employee_id: UUID
    payroll_period_id: UUID
    compensation_type: str
    gross_pay: Decimal
    federal_tax: Decimal
    state_tax: Decimal
    social_security: Decimal
    medicare: Decimal
    other_deductions: Decimal
    benefits_deductions: Decimal
    net_pay: Decimal
    hours_worked: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    hourly_rate: Decimal | None = None
    lines: list[PayStubLineResponse] = []


class PayStubListResponse(BaseModel):
    items: list[PayStubResponse]
    total: int


class PayrollRunResponse(BaseModel):
    """Schema for payroll run result."""

    model_config = ConfigDict(from_attributes=True)

    payroll_period_id: UUID
    stubs_created: int
    skipped_existing: int
    skipped: int
    warnings: list[str]
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    stub_ids: list[UUID]


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
