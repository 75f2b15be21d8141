"""Gross-to-net pay calculation for one employee and one period."""

from __future__ import annotations

from decimal import Decimal

from hrms_payroll.calculators.types import (
    PERIODS_PER_YEAR,
    ZERO,
    ActiveCompensation,
    CompensationType,
    DeductionRates,
    LineCategory,
    OvertimePolicy,
    StubCalculation,
    StubLine,
    quantize_money,
)


class PayCalculator:
    """Computes gross pay, withholding and net pay.

    Calculation order:
    1) Earnings lines (regular, overtime or salary), each rounded to cents
    2) Flat withholding on gross (skipped for contractors)
    3) Benefits contribution, capped so net pay never goes below zero
    4) Net = gross - all deductions

    Gross always equals the sum of the earning lines.
    """

    def __init__(
        self,
        policy: OvertimePolicy | None = None,
        rates: DeductionRates | None = None,
    ):
        self.policy = policy or OvertimePolicy()
        self.rates = rates or DeductionRates()

    def calculate(
        self,
        compensation: ActiveCompensation,
        regular_hours: Decimal = ZERO,
        overtime_hours: Decimal = ZERO,
        benefits: Decimal = ZERO,
    ) -> StubCalculation:
        """Calculate one pay stub.

        Args:
            compensation: Compensation in effect for the period
            regular_hours: Approved regular hours inside the period
            overtime_hours: Approved overtime hours inside the period
            benefits: Benefits employee contribution for the period

        Returns:
            The stub calculation with itemised lines
        """
        lines = self._earning_lines(compensation, regular_hours, overtime_hours)
        gross = sum((line.amount for line in lines), ZERO)

        if compensation.withholds_taxes:
            federal = quantize_money(gross * self.rates.federal)
            state = quantize_money(gross * self.rates.state)
            social_security = quantize_money(gross * self.rates.social_security)
            medicare = quantize_money(gross * self.rates.medicare)
        else:
            federal = state = social_security = medicare = ZERO

        taxes = federal + state + social_security + medicare
        other = ZERO
        benefits_taken = min(quantize_money(benefits), max(gross - taxes - other, ZERO))
        net = gross - taxes - other - benefits_taken

        for code, description, amount in (
            ("FIT", "Federal income tax", federal),
            ("SIT", "State income tax", state),
            ("SS", "Social security", social_security),
            ("MED", "Medicare", medicare),
        ):
            if amount:
                lines.append(StubLine(LineCategory.TAX, code, description, amount))
        if benefits_taken:
            lines.append(
                StubLine(LineCategory.DEDUCTION, "BEN", "Benefits contribution", benefits_taken)
            )

        return StubCalculation(
            employee_id=compensation.employee_id,
            compensation_type=compensation.compensation_type,
            gross_pay=gross,
            federal_tax=federal,
            state_tax=state,
            social_security=social_security,
            medicare=medicare,
            other_deductions=other,
            benefits_deductions=benefits_taken,
            net_pay=net,
            regular_hours=regular_hours if compensation.is_hours_based else ZERO,
            overtime_hours=overtime_hours if compensation.is_hours_based else ZERO,
            hourly_rate=compensation.hourly_rate,
            lines=lines,
        )

    def overtime_multiplier(self, compensation: ActiveCompensation) -> Decimal:
        """Premium multiplier for overtime hours under a compensation plan.

        Contractors and plans that are not overtime eligible are paid straight time.
        """
        if compensation.compensation_type == CompensationType.CONTRACT:
            return Decimal("1")
        if not compensation.overtime_eligible:
            return Decimal("1")
        return self.policy.multiplier

    def _earning_lines(
        self,
        compensation: ActiveCompensation,
        regular_hours: Decimal,
        overtime_hours: Decimal,
    ) -> list[StubLine]:
        if compensation.compensation_type == CompensationType.SALARY:
            periods = PERIODS_PER_YEAR[compensation.pay_frequency]
            amount = quantize_money(compensation.amount / periods)
            return [StubLine(LineCategory.EARNING, "SAL", "Salary", amount)]

        rate = compensation.amount
        lines = [
            StubLine(
                LineCategory.EARNING,
                "REG",
                "Regular hours",
                quantize_money(regular_hours * rate),
                hours=regular_hours,
                rate=rate,
            )
        ]
        if overtime_hours > ZERO:
            ot_rate = rate * self.overtime_multiplier(compensation)
            lines.append(
                StubLine(
                    LineCategory.EARNING,
                    "OT",
                    "Overtime hours",
                    quantize_money(overtime_hours * ot_rate),
                    hours=overtime_hours,
                    rate=ot_rate,
                )
            )
        return lines
