"""Tests for compensation plan resolution."""

from datetime import date
from decimal import Decimal

import pytest

from hrms_payroll.calculators.compensation_resolver import CompensationResolver
from hrms_payroll.calculators.types import CompensationType
from hrms_payroll.services.errors import CompensationNotFoundError

from .conftest import add_employee, add_plan

pytestmark = pytest.mark.asyncio


class TestGetActiveCompensation:
    """Test effective-dated plan selection."""

    async def test_latest_effective_plan_wins(self, session, employee):
        await add_plan(session, employee.employee_id, base_amount=Decimal("20.00"))
        await add_plan(
            session,
            employee.employee_id,
            base_amount=Decimal("25.00"),
            effective_date=date(2024, 6, 1),
        )
        resolver = CompensationResolver(session)

        before = await resolver.get_active_compensation(employee.employee_id, date(2024, 3, 1))
        after = await resolver.get_active_compensation(employee.employee_id, date(2024, 7, 1))

        assert before.amount == Decimal("20.00")
        assert after.amount == Decimal("25.00")
        assert after.compensation_type == CompensationType.HOURLY
        assert after.hourly_rate == Decimal("25.00")

    async def test_ended_plan_not_active_after_end_date(self, session, employee):
        await add_plan(session, employee.employee_id, end_date=date(2023, 12, 31))
        resolver = CompensationResolver(session)

        with pytest.raises(CompensationNotFoundError) as exc_info:
            await resolver.get_active_compensation(employee.employee_id, date(2024, 1, 1))

        assert exc_info.value.employee_id == employee.employee_id
        assert exc_info.value.as_of_date == date(2024, 1, 1)

    async def test_non_active_status_ignored(self, session, employee):
        await add_plan(session, employee.employee_id, status="pending")
        resolver = CompensationResolver(session)

        with pytest.raises(CompensationNotFoundError):
            await resolver.get_active_compensation(employee.employee_id, date(2024, 1, 1))

    async def test_not_yet_effective(self, session, employee):
        await add_plan(session, employee.employee_id, effective_date=date(2024, 2, 1))
        resolver = CompensationResolver(session)

        with pytest.raises(CompensationNotFoundError):
            await resolver.get_active_compensation(employee.employee_id, date(2024, 1, 15))

    async def test_salary_plan_has_no_hourly_rate(self, session, employee):
        await add_plan(
            session,
            employee.employee_id,
            compensation_type="salary",
            base_amount=Decimal("78000.00"),
            pay_frequency="biweekly",
        )
        resolver = CompensationResolver(session)

        comp = await resolver.get_active_compensation(employee.employee_id, date(2024, 1, 1))

        assert comp.compensation_type == CompensationType.SALARY
        assert comp.is_hours_based is False
        assert comp.hourly_rate is None
        assert comp.pay_frequency == "biweekly"


class TestListActiveForPeriod:
    """Test period-wide plan listing."""

    async def test_one_entry_per_employee(self, session, employee, manager):
        await add_plan(session, employee.employee_id, base_amount=Decimal("20.00"))
        await add_plan(
            session,
            employee.employee_id,
            base_amount=Decimal("22.00"),
            effective_date=date(2024, 1, 3),
        )
        await add_plan(
            session,
            manager.employee_id,
            compensation_type="salary",
            base_amount=Decimal("104000.00"),
        )
        resolver = CompensationResolver(session)

        active = await resolver.list_active_for_period(date(2024, 1, 1), date(2024, 1, 7))

        by_employee = {c.employee_id: c for c in active}
        assert len(active) == 2
        assert by_employee[employee.employee_id].amount == Decimal("22.00")
        assert by_employee[manager.employee_id].compensation_type == CompensationType.SALARY
        assert [c.employee_id for c in active] == sorted(by_employee, key=str)

    async def test_plans_outside_period_excluded(self, session, employee):
        late = await add_employee(session, "Lee", "Park")
        await add_plan(session, employee.employee_id, end_date=date(2023, 12, 31))
        await add_plan(session, late.employee_id, effective_date=date(2024, 2, 1))
        resolver = CompensationResolver(session)

        active = await resolver.list_active_for_period(date(2024, 1, 1), date(2024, 1, 7))

        assert active == []

    async def test_plan_ending_mid_period_included(self, session, employee):
        await add_plan(session, employee.employee_id, end_date=date(2024, 1, 3))
        resolver = CompensationResolver(session)

        active = await resolver.list_active_for_period(date(2024, 1, 1), date(2024, 1, 7))

        assert [c.employee_id for c in active] == [employee.employee_id]
