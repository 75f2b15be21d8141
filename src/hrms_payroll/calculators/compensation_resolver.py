"""Compensation plan resolution with effective dating."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.calculators.types import ActiveCompensation, CompensationType
from hrms_payroll.models import CompensationPlan
from hrms_payroll.services.errors import CompensationNotFoundError


def _to_active(plan: CompensationPlan) -> ActiveCompensation:
    return ActiveCompensation(
        employee_id=plan.employee_id,
        compensation_type=CompensationType(plan.compensation_type),
        amount=plan.base_amount,
        pay_frequency=plan.pay_frequency,
        overtime_eligible=plan.overtime_eligible,
        currency=plan.currency,
    )


class CompensationResolver:
    """Resolves the compensation in effect for employees.

    Selection rules:
    - Only plans with status 'active' are considered
    - Effective range must include the as-of date
    - When several plans qualify, the latest effective_date wins
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active_compensation(
        self,
        employee_id: UUID,
        as_of_date: date,
    ) -> ActiveCompensation:
        """Resolve the compensation in effect for an employee on a date.

        Raises:
            CompensationNotFoundError: If no active plan covers the date
        """
        result = await self.session.execute(
            select(CompensationPlan)
            .where(
                CompensationPlan.employee_id == employee_id,
                CompensationPlan.status == "active",
                CompensationPlan.effective_date <= as_of_date,
                (
                    CompensationPlan.end_date.is_(None)
                    | (CompensationPlan.end_date >= as_of_date)
                ),
            )
            .order_by(CompensationPlan.effective_date.desc())
            .limit(1)
        )
        plan = result.scalar_one_or_none()
        if plan is None:
            raise CompensationNotFoundError(employee_id, as_of_date)
        return _to_active(plan)

    async def list_active_for_period(
        self,
        start_date: date,
        end_date: date,
    ) -> list[ActiveCompensation]:
        """Compensation of every employee with an active plan overlapping a period.

        Returns one entry per employee, ordered by employee id.
        """
        result = await self.session.execute(
            select(CompensationPlan)
            .where(
                CompensationPlan.status == "active",
                CompensationPlan.effective_date <= end_date,
                (
                    CompensationPlan.end_date.is_(None)
                    | (CompensationPlan.end_date >= start_date)
                ),
            )
            .order_by(CompensationPlan.employee_id, CompensationPlan.effective_date.desc())
        )

        latest: dict[UUID, CompensationPlan] = {}
        for plan in result.scalars().all():
            # Rows arrive newest first per employee
            latest.setdefault(plan.employee_id, plan)

        return [_to_active(latest[employee_id]) for employee_id in sorted(latest, key=str)]
