"""Type definitions for hours and pay calculation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import UUID

from hrms_payroll.config import Settings

CENT = Decimal("0.01")
ZERO = Decimal("0")


def quantize_money(amount: Decimal) -> Decimal:
    """Round to cents, half up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def quantize_hours(hours: Decimal) -> Decimal:
    """Round to hundredths of an hour, half up."""
    return hours.quantize(CENT, rounding=ROUND_HALF_UP)


class CompensationType(str, Enum):
    """Compensation plan variants."""

    HOURLY = "hourly"
    SALARY = "salary"
    CONTRACT = "contract"


class EntryType(str, Enum):
    """Time entry types."""

    REGULAR = "regular"
    OVERTIME = "overtime"
    PTO = "pto"


class LineCategory(str, Enum):
    """Pay stub line categories."""

    EARNING = "earning"
    TAX = "tax"
    DEDUCTION = "deduction"


PERIODS_PER_YEAR: dict[str, int] = {
    "weekly": 52,
    "biweekly": 26,
    "semimonthly": 24,
    "monthly": 12,
    "annually": 1,
}


@dataclass(frozen=True)
class OvertimePolicy:
    """Weekly overtime threshold and premium multiplier."""

    weekly_threshold: Decimal = Decimal("40")
    multiplier: Decimal = Decimal("1.5")

    @classmethod
    def from_settings(cls, settings: Settings) -> OvertimePolicy:
        return cls(
            weekly_threshold=settings.overtime_weekly_threshold,
            multiplier=settings.overtime_multiplier,
        )


@dataclass(frozen=True)
class DeductionRates:
    """Flat withholding rates applied to gross pay."""

    federal: Decimal = Decimal("0.10")
    state: Decimal = Decimal("0.05")
    social_security: Decimal = Decimal("0.062")
    medicare: Decimal = Decimal("0.0145")

    @classmethod
    def from_settings(cls, settings: Settings) -> DeductionRates:
        return cls(
            federal=settings.federal_tax_rate,
            state=settings.state_tax_rate,
            social_security=settings.social_security_rate,
            medicare=settings.medicare_rate,
        )


@dataclass(frozen=True)
class HoursAllocation:
    """Regular/overtime share of one time entry after the weekly split."""

    entry_id: UUID
    work_date: date
    regular: Decimal
    overtime: Decimal
    pto: Decimal


@dataclass
class WeeklyHours:
    """Totals of one week's entries after the weekly split."""

    total: Decimal = ZERO
    regular: Decimal = ZERO
    overtime: Decimal = ZERO
    pto: Decimal = ZERO
    allocations: list[HoursAllocation] = field(default_factory=list)

    def within(self, start: date, end: date) -> tuple[Decimal, Decimal]:
        """Regular and overtime hours of entries dated inside [start, end]."""
        regular = ZERO
        overtime = ZERO
        for allocation in self.allocations:
            if start <= allocation.work_date <= end:
                regular += allocation.regular
                overtime += allocation.overtime
        return regular, overtime


@dataclass
class HoursSummary:
    """An employee's hours over a date range.

    Overtime is attributed per week, so a range that cuts through a week
    counts only the overtime of the entries dated inside it.
    """

    employee_id: UUID
    start_date: date
    end_date: date
    regular: Decimal = ZERO
    overtime: Decimal = ZERO
    pto: Decimal = ZERO
    entry_count: int = 0

    @property
    def total(self) -> Decimal:
        return self.regular + self.overtime + self.pto

    def add(self, allocation: HoursAllocation) -> None:
        self.regular += allocation.regular
        self.overtime += allocation.overtime
        self.pto += allocation.pto
        self.entry_count += 1


@dataclass(frozen=True)
class ActiveCompensation:
    """Compensation in effect for an employee.

    A tagged variant: ``amount`` is the hourly rate for hourly and contract
    plans and the annual salary for salary plans.
    """

    employee_id: UUID
    compensation_type: CompensationType
    amount: Decimal
    pay_frequency: str
    overtime_eligible: bool = True
    currency: str = "USD"

    @property
    def is_hours_based(self) -> bool:
        return self.compensation_type in (CompensationType.HOURLY, CompensationType.CONTRACT)

    @property
    def withholds_taxes(self) -> bool:
        return self.compensation_type != CompensationType.CONTRACT

    @property
    def hourly_rate(self) -> Decimal | None:
        return self.amount if self.is_hours_based else None


@dataclass(frozen=True)
class StubLine:
    """A pay stub line before persistence."""

    category: LineCategory
    code: str
    description: str
    amount: Decimal
    hours: Decimal | None = None
    rate: Decimal | None = None


@dataclass
class StubCalculation:
    """Calculated pay for one employee in one period."""

    employee_id: UUID
    compensation_type: CompensationType
    gross_pay: Decimal
    federal_tax: Decimal
    state_tax: Decimal
    social_security: Decimal
    medicare: Decimal
    other_deductions: Decimal
    benefits_deductions: Decimal
    net_pay: Decimal
    regular_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    hourly_rate: Decimal | None = None
    lines: list[StubLine] = field(default_factory=list)

    @property
    def hours_worked(self) -> Decimal:
        return self.regular_hours + self.overtime_hours

    @property
    def total_deductions(self) -> Decimal:
        return (
            self.federal_tax
            + self.state_tax
            + self.social_security
            + self.medicare
            + self.other_deductions
            + self.benefits_deductions
        )
