"""Hours and pay calculation."""

from hrms_payroll.calculators.compensation_resolver import CompensationResolver
from hrms_payroll.calculators.hours import split_weekly_hours
from hrms_payroll.calculators.pay_calculator import PayCalculator
from hrms_payroll.calculators.types import (
    ActiveCompensation,
    CompensationType,
    DeductionRates,
    HoursSummary,
    OvertimePolicy,
    StubCalculation,
    WeeklyHours,
)

__all__ = [
    "CompensationResolver",
    "split_weekly_hours",
    "PayCalculator",
    "ActiveCompensation",
    "CompensationType",
    "DeductionRates",
    "HoursSummary",
    "OvertimePolicy",
    "StubCalculation",
    "WeeklyHours",
]
