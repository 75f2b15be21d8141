"""Payroll run engine: approved hours and compensation into pay stubs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrms_payroll.calculators.compensation_resolver import CompensationResolver
from hrms_payroll.calculators.pay_calculator import PayCalculator
from hrms_payroll.calculators.types import (
    ZERO,
    ActiveCompensation,
    DeductionRates,
    OvertimePolicy,
    StubCalculation,
)
from hrms_payroll.config import Settings, get_settings
from hrms_payroll.database import dialect_insert
from hrms_payroll.models import PayrollPeriod, PayStub, PayStubLine, Timesheet
from hrms_payroll.services.aggregator import TimesheetAggregator
from hrms_payroll.services.audit import record_audit
from hrms_payroll.services.directory import BenefitsProvider, SqlBenefitsProvider
from hrms_payroll.services.errors import (
    AlreadyProcessingError,
    HRMSValidationError,
    InvalidTransitionError,
    PayrollPeriodNotFoundError,
    PayStubNotFoundError,
    PeriodNotOpenError,
    StateConflictError,
)
from hrms_payroll.services.state_machine import (
    PayrollPeriodStateMachine,
    PayrollPeriodStatus,
    TimesheetStatus,
)
from hrms_payroll.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class PayrollRunResult:
    """Outcome of one payroll run."""

    payroll_period_id: UUID
    stub_ids: list[UUID] = field(default_factory=list)
    skipped_existing: int = 0
    skipped: int = 0
    warnings: list[str] = field(default_factory=list)
    total_gross: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_net: Decimal = ZERO

    @property
    def stubs_created(self) -> int:
        return len(self.stub_ids)

    def add(self, stub_id: UUID, calc: StubCalculation) -> None:
        self.stub_ids.append(stub_id)
        self.total_gross += calc.gross_pay
        self.total_deductions += calc.total_deductions
        self.total_net += calc.net_pay

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


class PayrollRunService:
    """Service for payroll periods and payroll runs.

    A run:
    1. Takes a processing lease on the period (open → processing) with a
       fresh token; a lease older than the configured timeout can be taken
       over so a crashed run does not strand the period
    2. Computes and writes one immutable pay stub per employee with an
       active compensation plan, committing after each employee
    3. Closes the period (processing → closed) only while it still holds
       the lease

    Stubs are written with an idempotent insert on (employee, period); an
    existing stub is never recalculated. Any unexpected error returns the
    period to open and re-raises. Stubs already committed stay.
    """

    def __init__(
        self,
        session: AsyncSession,
        resolver: CompensationResolver | None = None,
        calculator: PayCalculator | None = None,
        aggregator: TimesheetAggregator | None = None,
        benefits: BenefitsProvider | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.resolver = resolver or CompensationResolver(session)
        self.calculator = calculator or PayCalculator(
            OvertimePolicy.from_settings(self.settings),
            DeductionRates.from_settings(self.settings),
        )
        self.aggregator = aggregator or TimesheetAggregator(session, self.calculator.policy)
        self.benefits = benefits or SqlBenefitsProvider(session)

    # ===== Periods =====

    async def create_period(
        self,
        start_date: date,
        end_date: date,
        pay_date: date,
    ) -> PayrollPeriod:
        if end_date < start_date:
            raise HRMSValidationError(
                "Period end date cannot be before its start date",
                start_date=start_date,
                end_date=end_date,
            )
        duplicate = await self.session.scalar(
            select(PayrollPeriod.payroll_period_id).where(
                PayrollPeriod.start_date == start_date,
                PayrollPeriod.end_date == end_date,
            )
        )
        if duplicate is not None:
            raise StateConflictError(
                f"A payroll period for {start_date} to {end_date} already exists",
                payroll_period_id=duplicate,
            )

        period = PayrollPeriod(
            start_date=start_date,
            end_date=end_date,
            pay_date=pay_date,
            status=PayrollPeriodStatus.OPEN.value,
        )
        self.session.add(period)
        await self.session.flush()
        await self.session.refresh(period)
        logger.info(
            "Created payroll period %s (%s to %s)", period.payroll_period_id, start_date, end_date
        )
        return period

    async def get_period(self, period_id: UUID) -> PayrollPeriod:
        result = await self.session.execute(
            select(PayrollPeriod)
            .where(PayrollPeriod.payroll_period_id == period_id)
            .execution_options(populate_existing=True)
        )
        period = result.scalar_one_or_none()
        if period is None:
            raise PayrollPeriodNotFoundError(period_id)
        return period

    async def list_periods(self, status: str | None = None) -> list[PayrollPeriod]:
        stmt = select(PayrollPeriod)
        if status is not None:
            stmt = stmt.where(PayrollPeriod.status == status)
        result = await self.session.execute(stmt.order_by(PayrollPeriod.start_date.desc()))
        return list(result.scalars().all())

    # ===== Pay stubs =====

    async def list_pay_stubs_for_period(self, period_id: UUID) -> list[PayStub]:
        await self.get_period(period_id)
        result = await self.session.execute(
            select(PayStub)
            .where(PayStub.payroll_period_id == period_id)
            .options(selectinload(PayStub.lines))
            .order_by(PayStub.employee_id)
        )
        return list(result.scalars().all())

    async def list_pay_stubs_for_employee(self, employee_id: UUID) -> list[PayStub]:
        result = await self.session.execute(
            select(PayStub)
            .join(PayrollPeriod)
            .where(PayStub.employee_id == employee_id)
            .options(selectinload(PayStub.lines))
            .order_by(PayrollPeriod.start_date.desc())
        )
        return list(result.scalars().all())

    async def get_pay_stub(self, pay_stub_id: UUID) -> PayStub:
        result = await self.session.execute(
            select(PayStub)
            .where(PayStub.pay_stub_id == pay_stub_id)
            .options(selectinload(PayStub.lines))
        )
        stub = result.scalar_one_or_none()
        if stub is None:
            raise PayStubNotFoundError(pay_stub_id)
        return stub

    # ===== Runs =====

    async def run_payroll(self, period_id: UUID, actor_id: UUID | None = None) -> PayrollRunResult:
        """Run payroll for a period.

        Raises:
            PayrollPeriodNotFoundError: Unknown period
            PeriodNotOpenError: The period is closed
            AlreadyProcessingError: Another run holds a live lease
        """
        period = await self.get_period(period_id)
        token = await self._acquire_lease(period)
        await self.session.commit()

        logger.info(
            "Payroll run started for period %s (%s to %s)",
            period_id,
            period.start_date,
            period.end_date,
        )

        try:
            result = await self._process(period)
            await self._close(period, token, actor_id, result)
            await self.session.commit()
        except Exception:
            logger.exception("Payroll run for period %s aborted; returning it to open", period_id)
            await self.session.rollback()
            await self._release_lease(period_id, token)
            await self.session.commit()
            raise

        logger.info(
            "Payroll run for period %s closed: %d stubs, %d existing, %d skipped, gross %s",
            period_id,
            result.stubs_created,
            result.skipped_existing,
            result.skipped,
            result.total_gross,
        )
        return result

    async def _acquire_lease(self, period: PayrollPeriod) -> UUID:
        """Move the period to processing under a fresh lease token."""
        # A processing period may still be taken over once its lease is stale
        if period.status != PayrollPeriodStatus.PROCESSING.value and not (
            PayrollPeriodStateMachine.can_transition(
                period.status, PayrollPeriodStatus.PROCESSING.value
            )
        ):
            raise PeriodNotOpenError(period.payroll_period_id, period.status)

        now = utcnow()
        stale_before = now - timedelta(minutes=self.settings.payroll_lease_timeout_minutes)
        token = uuid4()
        previous_status = period.status

        result = await self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.payroll_period_id == period.payroll_period_id,
                or_(
                    PayrollPeriod.status == PayrollPeriodStatus.OPEN.value,
                    (PayrollPeriod.status == PayrollPeriodStatus.PROCESSING.value)
                    & (PayrollPeriod.processing_started_at < stale_before),
                ),
            )
            .values(
                status=PayrollPeriodStatus.PROCESSING.value,
                processing_token=token,
                processing_started_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(period)

        if result.rowcount == 0:
            if period.status == PayrollPeriodStatus.PROCESSING.value:
                raise AlreadyProcessingError(period.payroll_period_id)
            raise PeriodNotOpenError(period.payroll_period_id, period.status)

        if previous_status == PayrollPeriodStatus.PROCESSING.value:
            logger.warning(
                "Took over stale processing lease on period %s", period.payroll_period_id
            )
        return token

    async def _release_lease(self, period_id: UUID, token: UUID) -> None:
        await self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.payroll_period_id == period_id,
                PayrollPeriod.processing_token == token,
            )
            .values(
                status=PayrollPeriodStatus.OPEN.value,
                processing_token=None,
                processing_started_at=None,
            )
            .execution_options(synchronize_session=False)
        )

    async def _close(
        self,
        period: PayrollPeriod,
        token: UUID,
        actor_id: UUID | None,
        result: PayrollRunResult,
    ) -> None:
        update_result = await self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.payroll_period_id == period.payroll_period_id,
                PayrollPeriod.status == PayrollPeriodStatus.PROCESSING.value,
                PayrollPeriod.processing_token == token,
            )
            .values(
                status=PayrollPeriodStatus.CLOSED.value,
                processed_by=actor_id,
                processed_at=utcnow(),
                processing_token=None,
                processing_started_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        if update_result.rowcount == 0:
            raise InvalidTransitionError(
                PayrollPeriodStatus.PROCESSING.value,
                PayrollPeriodStatus.CLOSED.value,
                "processing lease was lost",
            )

        record_audit(
            self.session,
            "payroll_period",
            period.payroll_period_id,
            "closed",
            actor_id=actor_id,
            details={
                "stubs_created": result.stubs_created,
                "skipped_existing": result.skipped_existing,
                "skipped": result.skipped,
                "total_gross": str(result.total_gross),
                "total_net": str(result.total_net),
            },
        )
        await self.session.refresh(period)

    async def _process(self, period: PayrollPeriod) -> PayrollRunResult:
        result = PayrollRunResult(payroll_period_id=period.payroll_period_id)

        compensations = await self.resolver.list_active_for_period(
            period.start_date, period.end_date
        )
        existing = await self._existing_stub_employees(period.payroll_period_id)

        for compensation in compensations:
            employee_id = compensation.employee_id
            if employee_id in existing:
                result.skipped_existing += 1
                continue

            try:
                calc = await self._calculate_employee(period, compensation, result)
            except StateConflictError as exc:
                result.warn(f"Employee {employee_id}: {exc.message}")
                result.skipped += 1
                continue

            if calc is None:
                result.skipped += 1
                continue

            stub_id = await self._write_stub(period.payroll_period_id, calc)
            await self.session.commit()

            if stub_id is None:
                # Written by a concurrent run since the pre-load
                result.skipped_existing += 1
            else:
                result.add(stub_id, calc)

        return result

    async def _existing_stub_employees(self, period_id: UUID) -> set[UUID]:
        rows = await self.session.execute(
            select(PayStub.employee_id).where(PayStub.payroll_period_id == period_id)
        )
        return set(rows.scalars().all())

    async def _calculate_employee(
        self,
        period: PayrollPeriod,
        compensation: ActiveCompensation,
        result: PayrollRunResult,
    ) -> StubCalculation | None:
        regular = overtime = ZERO
        if compensation.is_hours_based:
            hours = await self._approved_hours(compensation.employee_id, period, result)
            if hours is None:
                return None
            regular, overtime = hours

        benefits = await self.benefits.get_active_deductions(
            compensation.employee_id, period.end_date
        )
        return self.calculator.calculate(compensation, regular, overtime, benefits)

    async def _approved_hours(
        self,
        employee_id: UUID,
        period: PayrollPeriod,
        result: PayrollRunResult,
    ) -> tuple[Decimal, Decimal] | None:
        """Regular and overtime hours dated inside the period from approved weeks.

        Returns None (after recording a warning) when any overlapping week is
        not approved or there are no hours.
        """
        rows = await self.session.execute(
            select(Timesheet)
            .where(
                Timesheet.employee_id == employee_id,
                Timesheet.week_start <= period.end_date,
                Timesheet.week_end >= period.start_date,
            )
            .order_by(Timesheet.week_start)
        )
        timesheets = list(rows.scalars().all())

        pending = [ts for ts in timesheets if ts.status != TimesheetStatus.APPROVED.value]
        if pending:
            weeks = ", ".join(f"{ts.week_start} ({ts.status})" for ts in pending)
            result.warn(f"Employee {employee_id}: skipped, unapproved timesheets: {weeks}")
            return None

        regular = overtime = ZERO
        for timesheet in timesheets:
            weekly = await self.aggregator.compute_week(employee_id, timesheet.week_start)
            week_regular, week_overtime = weekly.within(period.start_date, period.end_date)
            regular += week_regular
            overtime += week_overtime

        if regular + overtime <= ZERO:
            result.warn(f"Employee {employee_id}: skipped, no approved hours in period")
            return None
        return regular, overtime

    async def _write_stub(self, period_id: UUID, calc: StubCalculation) -> UUID | None:
        """Insert the stub and its lines; None if a stub already exists."""
        pay_stub_id = uuid4()
        stmt = (
            dialect_insert(self.session, PayStub)
            .values(
                pay_stub_id=pay_stub_id,
                employee_id=calc.employee_id,
                payroll_period_id=period_id,
                compensation_type=calc.compensation_type.value,
                gross_pay=calc.gross_pay,
                federal_tax=calc.federal_tax,
                state_tax=calc.state_tax,
                social_security=calc.social_security,
                medicare=calc.medicare,
                other_deductions=calc.other_deductions,
                benefits_deductions=calc.benefits_deductions,
                net_pay=calc.net_pay,
                hours_worked=calc.hours_worked,
                regular_hours=calc.regular_hours,
                overtime_hours=calc.overtime_hours,
                hourly_rate=calc.hourly_rate,
            )
            .on_conflict_do_nothing(index_elements=["employee_id", "payroll_period_id"])
        )
        insert_result = await self.session.execute(stmt)
        if insert_result.rowcount == 0:
            return None

        self.session.add_all(
            PayStubLine(
                pay_stub_id=pay_stub_id,
                sequence=sequence,
                category=line.category.value,
                code=line.code,
                description=line.description,
                hours=line.hours,
                rate=line.rate,
                amount=line.amount,
            )
            for sequence, line in enumerate(calc.lines, start=1)
        )
        await self.session.flush()
        return pay_stub_id

