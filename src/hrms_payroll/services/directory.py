"""Employee directory, caller identity and benefits interfaces.

The timesheet and payroll services consume these collaborators only through
the protocols below. The SQL implementations read the backing tables in
``models.employee``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.models import BenefitDeduction, Employee
from hrms_payroll.services.errors import NotAuthorizedError


class Role(str, Enum):
    """Caller roles."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    ADMIN = "admin"
    HR = "hr"


# Roles allowed to review any timesheet and run payroll
PRIVILEGED_ROLES = frozenset({Role.ADMIN, Role.HR})


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller."""

    user_id: UUID
    role: Role = Role.EMPLOYEE

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


class EmployeeDirectory(Protocol):
    async def get_employee(self, employee_id: UUID) -> Employee | None: ...

    async def is_manager_of(self, manager_id: UUID, employee_id: UUID) -> bool: ...

    async def list_reports(self, manager_id: UUID) -> list[UUID]: ...


class BenefitsProvider(Protocol):
    async def get_active_deductions(self, employee_id: UUID, as_of_date: date) -> Decimal: ...


class SqlEmployeeDirectory:
    """Employee directory backed by the employee table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_employee(self, employee_id: UUID) -> Employee | None:
        return await self.session.get(Employee, employee_id)

    async def is_manager_of(self, manager_id: UUID, employee_id: UUID) -> bool:
        """Check direct management. Nobody manages themselves."""
        if manager_id == employee_id:
            return False
        employee = await self.get_employee(employee_id)
        return employee is not None and employee.manager_id == manager_id

    async def list_reports(self, manager_id: UUID) -> list[UUID]:
        result = await self.session.execute(
            select(Employee.employee_id).where(
                Employee.manager_id == manager_id,
                Employee.employee_id != manager_id,
            )
        )
        return list(result.scalars().all())


class SqlBenefitsProvider:
    """Benefits contributions backed by the benefit_deduction table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active_deductions(self, employee_id: UUID, as_of_date: date) -> Decimal:
        """Sum of per-period employee contributions active on a date."""
        result = await self.session.execute(
            select(func.coalesce(func.sum(BenefitDeduction.employee_contribution), 0)).where(
                BenefitDeduction.employee_id == employee_id,
                BenefitDeduction.start_date <= as_of_date,
                (
                    BenefitDeduction.end_date.is_(None)
                    | (BenefitDeduction.end_date >= as_of_date)
                ),
            )
        )
        return Decimal(str(result.scalar_one()))


async def ensure_can_view_employee(
    directory: EmployeeDirectory,
    caller: CallerIdentity,
    employee_id: UUID,
) -> None:
    """Employees see their own records; managers their reports'; admin and HR everyone's."""
    if caller.user_id == employee_id or caller.is_privileged:
        return
    if await directory.is_manager_of(caller.user_id, employee_id):
        return
    raise NotAuthorizedError(
        "Not allowed to view this employee's records",
        employee_id=employee_id,
        user_id=caller.user_id,
    )
