"""Timesheet approval workflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.calculators.types import ZERO
from hrms_payroll.config import Settings, get_settings
from hrms_payroll.models import ClockSession, TimeEntry, Timesheet
from hrms_payroll.services.aggregator import TimesheetAggregator
from hrms_payroll.services.audit import record_audit
from hrms_payroll.services.directory import (
    CallerIdentity,
    EmployeeDirectory,
    SqlEmployeeDirectory,
    ensure_can_view_employee,
)
from hrms_payroll.services.errors import (
    EmptyTimesheetError,
    InvalidTransitionError,
    MissingReasonError,
    NotAuthorizedError,
    NotOwnerError,
    OpenClockSessionError,
    TimesheetNotFoundError,
)
from hrms_payroll.services.state_machine import TimesheetStateMachine, TimesheetStatus
from hrms_payroll.timeutils import local_date, utcnow, week_bounds

logger = logging.getLogger(__name__)


@dataclass
class TimesheetDetail:
    """A timesheet with the entries dated inside its week."""

    timesheet: Timesheet
    entries: list[TimeEntry]


class TimesheetApprovalService:
    """Service for the timesheet approval lifecycle.

    Transitions:
    - submit: draft|rejected → submitted (owner only, non-empty week)
    - approve: submitted → approved (manager of the employee, or admin/hr)
    - reject: submitted → rejected (same reviewers, reason required)

    Every transition is a conditional update on the expected current status,
    so of two concurrent reviewers exactly one wins and the other gets
    InvalidTransitionError. Each transition writes an audit event in the
    same transaction.
    """

    def __init__(
        self,
        session: AsyncSession,
        directory: EmployeeDirectory | None = None,
        aggregator: TimesheetAggregator | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.directory = directory or SqlEmployeeDirectory(session)
        self.aggregator = aggregator or TimesheetAggregator(session)
        self.settings = settings or get_settings()

    async def get_timesheet(self, timesheet_id: UUID) -> Timesheet:
        result = await self.session.execute(
            select(Timesheet)
            .where(Timesheet.timesheet_id == timesheet_id)
            .execution_options(populate_existing=True)
        )
        timesheet = result.scalar_one_or_none()
        if timesheet is None:
            raise TimesheetNotFoundError(timesheet_id)
        return timesheet

    async def find_timesheet(self, employee_id: UUID, week_start: date) -> Timesheet | None:
        """The employee's timesheet for the week containing week_start, if any."""
        return await self.aggregator.get_for_week(employee_id, week_start)

    async def get_timesheet_detail(self, timesheet_id: UUID) -> TimesheetDetail:
        timesheet = await self.get_timesheet(timesheet_id)
        entries = await self.aggregator.load_week_entries(
            timesheet.employee_id, timesheet.week_start
        )
        entries.sort(key=lambda e: (e.work_date, e.project_id, str(e.time_entry_id)))
        return TimesheetDetail(timesheet=timesheet, entries=entries)

    async def submit(self, timesheet_id: UUID, employee_id: UUID) -> Timesheet:
        """Submit a timesheet for review.

        Totals are refreshed from the week's entries as part of the transition.

        Raises:
            TimesheetNotFoundError: Unknown timesheet
            NotOwnerError: The caller does not own the timesheet
            InvalidTransitionError: The timesheet is not draft or rejected
            EmptyTimesheetError: The week has no hours
            OpenClockSessionError: A clock session dated in the week is still open
        """
        timesheet = await self.get_timesheet(timesheet_id)
        if timesheet.employee_id != employee_id:
            raise NotOwnerError(employee_id, "timesheet")

        from_status = timesheet.status
        TimesheetStateMachine.validate_transition(from_status, TimesheetStatus.SUBMITTED.value)

        weekly = await self.aggregator.compute_week(employee_id, timesheet.week_start)
        if weekly.total <= ZERO:
            raise EmptyTimesheetError(timesheet_id)
        await self._ensure_no_open_session(employee_id, timesheet.week_start)

        await self._compare_and_set(
            timesheet,
            TimesheetStatus.SUBMITTED.value,
            status=TimesheetStatus.SUBMITTED.value,
            submitted_at=utcnow(),
            rejection_reason=None,
            total_hours=weekly.total,
            regular_hours=weekly.regular,
            overtime_hours=weekly.overtime,
            pto_hours=weekly.pto,
        )

        record_audit(
            self.session,
            "timesheet",
            timesheet_id,
            "submitted",
            actor_id=employee_id,
            details={"from_status": from_status, "total_hours": str(weekly.total)},
        )
        logger.info(
            "Timesheet %s submitted by %s (%s hours)", timesheet_id, employee_id, weekly.total
        )
        return timesheet

    async def submit_week(self, employee_id: UUID, week_start: date) -> Timesheet:
        """Submit the week containing week_start, creating its timesheet if needed."""
        timesheet = await self.aggregator.get_or_create(employee_id, week_start)
        return await self.submit(timesheet.timesheet_id, employee_id)

    async def approve(self, timesheet_id: UUID, reviewer: CallerIdentity) -> Timesheet:
        """Approve a submitted timesheet.

        Raises:
            TimesheetNotFoundError: Unknown timesheet
            InvalidTransitionError: The timesheet is not submitted
            NotAuthorizedError: The reviewer may not review this employee
        """
        timesheet = await self.get_timesheet(timesheet_id)
        TimesheetStateMachine.validate_transition(timesheet.status, TimesheetStatus.APPROVED.value)
        await self._authorize_review(timesheet, reviewer)

        await self._compare_and_set(
            timesheet,
            TimesheetStatus.APPROVED.value,
            status=TimesheetStatus.APPROVED.value,
            reviewed_by=reviewer.user_id,
            reviewed_at=utcnow(),
        )

        record_audit(
            self.session,
            "timesheet",
            timesheet_id,
            "approved",
            actor_id=reviewer.user_id,
            details={"role": reviewer.role.value},
        )
        logger.info("Timesheet %s approved by %s", timesheet_id, reviewer.user_id)
        return timesheet

    async def reject(
        self,
        timesheet_id: UUID,
        reviewer: CallerIdentity,
        reason: str,
    ) -> Timesheet:
        """Reject a submitted timesheet with a reason.

        Raises:
            MissingReasonError: The reason is empty
            TimesheetNotFoundError: Unknown timesheet
            InvalidTransitionError: The timesheet is not submitted
            NotAuthorizedError: The reviewer may not review this employee
        """
        reason = (reason or "").strip()
        if not reason:
            raise MissingReasonError()

        timesheet = await self.get_timesheet(timesheet_id)
        TimesheetStateMachine.validate_transition(timesheet.status, TimesheetStatus.REJECTED.value)
        await self._authorize_review(timesheet, reviewer)

        await self._compare_and_set(
            timesheet,
            TimesheetStatus.REJECTED.value,
            status=TimesheetStatus.REJECTED.value,
            reviewed_by=reviewer.user_id,
            reviewed_at=utcnow(),
            rejection_reason=reason,
        )

        record_audit(
            self.session,
            "timesheet",
            timesheet_id,
            "rejected",
            actor_id=reviewer.user_id,
            details={"reason": reason},
        )
        logger.info("Timesheet %s rejected by %s: %s", timesheet_id, reviewer.user_id, reason)
        return timesheet

    async def list_pending(self, reviewer: CallerIdentity) -> list[Timesheet]:
        """Submitted timesheets the reviewer may act on.

        Admin and HR see every submitted timesheet; anyone else sees their
        direct reports'.
        """
        stmt = select(Timesheet).where(Timesheet.status == TimesheetStatus.SUBMITTED.value)
        if not reviewer.is_privileged:
            reports = await self.directory.list_reports(reviewer.user_id)
            if not reports:
                return []
            stmt = stmt.where(Timesheet.employee_id.in_(reports))

        result = await self.session.execute(
            stmt.order_by(Timesheet.week_start, Timesheet.submitted_at)
        )
        return list(result.scalars().all())

    async def ensure_can_view(self, timesheet: Timesheet, caller: CallerIdentity) -> None:
        """Owners, their managers, admin and HR may read a timesheet."""
        await ensure_can_view_employee(self.directory, caller, timesheet.employee_id)

    async def _ensure_no_open_session(self, employee_id: UUID, week_start: date) -> None:
        # Clock-out of a locked week is refused, so an open session would never close
        result = await self.session.execute(
            select(ClockSession).where(
                ClockSession.employee_id == employee_id,
                ClockSession.clock_out.is_(None),
            )
        )
        open_session = result.scalar_one_or_none()
        if open_session is None:
            return
        monday, sunday = week_bounds(week_start)
        if monday <= local_date(open_session.clock_in, self.settings.local_timezone) <= sunday:
            raise OpenClockSessionError(employee_id, open_session.clock_session_id, monday)

    async def _authorize_review(self, timesheet: Timesheet, reviewer: CallerIdentity) -> None:
        if reviewer.user_id == timesheet.employee_id:
            raise NotAuthorizedError(
                "Employees cannot review their own timesheet",
                timesheet_id=timesheet.timesheet_id,
                reviewer_id=reviewer.user_id,
            )
        if reviewer.is_privileged:
            return
        if await self.directory.is_manager_of(reviewer.user_id, timesheet.employee_id):
            return
        raise NotAuthorizedError(
            "Reviewer is not the employee's manager",
            timesheet_id=timesheet.timesheet_id,
            reviewer_id=reviewer.user_id,
        )

    async def _compare_and_set(
        self,
        timesheet: Timesheet,
        to_status: str,
        **values: Any,
    ) -> None:
        """Apply values only if the timesheet still has the status it was read with."""
        from_status = timesheet.status

        result = await self.session.execute(
            update(Timesheet)
            .where(
                Timesheet.timesheet_id == timesheet.timesheet_id,
                Timesheet.status == from_status,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(timesheet)

        if result.rowcount == 0:
            raise InvalidTransitionError(
                from_status,
                to_status,
                f"status changed concurrently (now '{timesheet.status}')",
            )

