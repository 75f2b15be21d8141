"""Pytest fixtures for HRMS payroll tests."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hrms_payroll.calculators.types import OvertimePolicy
from hrms_payroll.config import Settings
from hrms_payroll.models import Base, CompensationPlan, Employee
from hrms_payroll.services.aggregator import TimesheetAggregator
from hrms_payroll.services.approval_service import TimesheetApprovalService
from hrms_payroll.services.clock_service import ClockService
from hrms_payroll.services.directory import CallerIdentity, Role
from hrms_payroll.services.payroll_run_service import PayrollRunService
from hrms_payroll.services.time_entry_service import TimeEntryService

TEST_DATABASE_URL = "sqlite+aiosqlite://"

# 2024-01-01 is a Monday
WEEK_START = date(2024, 1, 1)

TEST_SETTINGS = Settings(
    database_url=TEST_DATABASE_URL,
    host="127.0.0.1",
    port=8000,
    debug=False,
    log_level="DEBUG",
    local_timezone="UTC",
    overtime_weekly_threshold=Decimal("40"),
    overtime_multiplier=Decimal("1.5"),
    federal_tax_rate=Decimal("0.10"),
    state_tax_rate=Decimal("0.05"),
    social_security_rate=Decimal("0.062"),
    medicare_rate=Decimal("0.0145"),
    payroll_lease_timeout_minutes=30,
)


def make_settings(**overrides) -> Settings:
    return replace(TEST_SETTINGS, **overrides)


def day(offset: int) -> date:
    """Date offset days after WEEK_START."""
    return WEEK_START + timedelta(days=offset)


@pytest_asyncio.fixture
async def engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings() -> Settings:
    return TEST_SETTINGS


# ===== Directory =====


async def add_employee(
    session: AsyncSession,
    first_name: str,
    last_name: str,
    manager_id: UUID | None = None,
) -> Employee:
    employee = Employee(
        employee_id=uuid4(),
        first_name=first_name,
        last_name=last_name,
        email=f"{first_name.lower()}@example.com",
        manager_id=manager_id,
        status="active",
    )
    session.add(employee)
    await session.flush()
    return employee


async def add_plan(
    session: AsyncSession,
    employee_id: UUID,
    compensation_type: str = "hourly",
    base_amount: Decimal = Decimal("20.00"),
    pay_frequency: str = "weekly",
    effective_date: date = date(2023, 1, 1),
    end_date: date | None = None,
    status: str = "active",
    overtime_eligible: bool = True,
) -> CompensationPlan:
    plan = CompensationPlan(
        compensation_plan_id=uuid4(),
        employee_id=employee_id,
        compensation_type=compensation_type,
        base_amount=base_amount,
        pay_frequency=pay_frequency,
        effective_date=effective_date,
        end_date=end_date,
        status=status,
        overtime_eligible=overtime_eligible,
    )
    session.add(plan)
    await session.flush()
    return plan


@pytest_asyncio.fixture
async def manager(session: AsyncSession) -> Employee:
    """A line manager with no manager of their own."""
    return await add_employee(session, "Maria", "Lopez")


@pytest_asyncio.fixture
async def employee(session: AsyncSession, manager: Employee) -> Employee:
    """An employee reporting to the manager."""
    return await add_employee(session, "Sam", "Rivera", manager_id=manager.employee_id)


@pytest_asyncio.fixture
async def coworker(session: AsyncSession, manager: Employee) -> Employee:
    """Another report of the same manager."""
    return await add_employee(session, "Alex", "Chen", manager_id=manager.employee_id)


@pytest_asyncio.fixture
async def hourly_plan(session: AsyncSession, employee: Employee) -> CompensationPlan:
    """$20/h weekly-paid plan, overtime eligible."""
    return await add_plan(session, employee.employee_id)


@pytest.fixture
def employee_caller(employee: Employee) -> CallerIdentity:
    return CallerIdentity(user_id=employee.employee_id, role=Role.EMPLOYEE)


@pytest.fixture
def manager_caller(manager: Employee) -> CallerIdentity:
    return CallerIdentity(user_id=manager.employee_id, role=Role.MANAGER)


@pytest.fixture
def hr_caller() -> CallerIdentity:
    return CallerIdentity(user_id=uuid4(), role=Role.HR)


# ===== Services =====


@pytest.fixture
def aggregator(session: AsyncSession, settings: Settings) -> TimesheetAggregator:
    return TimesheetAggregator(session, OvertimePolicy.from_settings(settings))


@pytest.fixture
def clock_service(
    session: AsyncSession, aggregator: TimesheetAggregator, settings: Settings
) -> ClockService:
    return ClockService(session, aggregator=aggregator, settings=settings)


@pytest.fixture
def entry_service(session: AsyncSession, aggregator: TimesheetAggregator) -> TimeEntryService:
    return TimeEntryService(session, aggregator=aggregator)


@pytest.fixture
def approval_service(
    session: AsyncSession, aggregator: TimesheetAggregator, settings: Settings
) -> TimesheetApprovalService:
    return TimesheetApprovalService(session, aggregator=aggregator, settings=settings)


@pytest.fixture
def payroll_service(
    session: AsyncSession, aggregator: TimesheetAggregator, settings: Settings
) -> PayrollRunService:
    return PayrollRunService(session, aggregator=aggregator, settings=settings)


async def log_week(
    entry_service: TimeEntryService,
    employee_id: UUID,
    daily_hours: list[str],
    week_start: date = WEEK_START,
) -> None:
    """Save one manual entry per day starting Monday."""
    for offset, hours in enumerate(daily_hours):
        await entry_service.upsert_entry(
            employee_id, week_start + timedelta(days=offset), None, Decimal(hours)
        )


async def approve_week(
    entry_service: TimeEntryService,
    approval_service: TimesheetApprovalService,
    employee_id: UUID,
    reviewer: CallerIdentity,
    daily_hours: list[str],
    week_start: date = WEEK_START,
):
    """Log, submit and approve one week."""
    await log_week(entry_service, employee_id, daily_hours, week_start)
    timesheet = await approval_service.submit_week(employee_id, week_start)
    return await approval_service.approve(timesheet.timesheet_id, reviewer)
