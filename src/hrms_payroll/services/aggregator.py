"""Timesheet aggregation: derive weekly totals from time entries."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.calculators.hours import split_weekly_hours
from hrms_payroll.calculators.types import HoursSummary, OvertimePolicy, WeeklyHours
from hrms_payroll.config import get_settings
from hrms_payroll.database import dialect_insert
from hrms_payroll.models import TimeEntry, Timesheet
from hrms_payroll.services.errors import HRMSValidationError, TimesheetLockedError
from hrms_payroll.services.state_machine import TimesheetStateMachine, TimesheetStatus
from hrms_payroll.timeutils import week_bounds

logger = logging.getLogger(__name__)


class TimesheetAggregator:
    """Keeps each timesheet's totals equal to a full recomputation of its week.

    Totals are never patched incrementally. Every entry mutation calls
    recompute(), which reloads the whole week and rewrites the totals with a
    conditional update that only succeeds while the timesheet is editable.
    """

    def __init__(self, session: AsyncSession, policy: OvertimePolicy | None = None):
        self.session = session
        self.policy = policy or OvertimePolicy.from_settings(get_settings())

    async def get_for_week(self, employee_id: UUID, week_start: date) -> Timesheet | None:
        """Load the timesheet of the week containing week_start, if any."""
        monday, _ = week_bounds(week_start)
        result = await self.session.execute(
            select(Timesheet)
            .where(
                Timesheet.employee_id == employee_id,
                Timesheet.week_start == monday,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, employee_id: UUID, week_start: date) -> Timesheet:
        """Return the week's timesheet, creating a draft if none exists.

        Creation is an idempotent insert on (employee_id, week_start), so
        concurrent callers converge on the same row.
        """
        monday, sunday = week_bounds(week_start)
        stmt = (
            dialect_insert(self.session, Timesheet)
            .values(
                timesheet_id=uuid4(),
                employee_id=employee_id,
                week_start=monday,
                week_end=sunday,
                status=TimesheetStatus.DRAFT.value,
            )
            .on_conflict_do_nothing(index_elements=["employee_id", "week_start"])
        )
        result = await self.session.execute(stmt)
        if result.rowcount:
            logger.debug("Created timesheet for employee %s week %s", employee_id, monday)

        timesheet = await self.get_for_week(employee_id, monday)
        if timesheet is None:
            raise RuntimeError(f"Timesheet for {employee_id} week {monday} vanished after insert")
        return timesheet

    async def ensure_editable(self, employee_id: UUID, work_date: date) -> Timesheet | None:
        """Raise TimesheetLockedError if the week of work_date is submitted or approved."""
        timesheet = await self.get_for_week(employee_id, work_date)
        if timesheet is not None and not TimesheetStateMachine.can_modify_entries(
            timesheet.status
        ):
            raise TimesheetLockedError(employee_id, timesheet.week_start, timesheet.status)
        return timesheet

    async def load_week_entries(self, employee_id: UUID, week_start: date) -> list[TimeEntry]:
        monday, sunday = week_bounds(week_start)
        result = await self.session.execute(
            select(TimeEntry)
            .where(
                TimeEntry.employee_id == employee_id,
                TimeEntry.work_date >= monday,
                TimeEntry.work_date <= sunday,
            )
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def compute_week(self, employee_id: UUID, week_start: date) -> WeeklyHours:
        """Split the week's current entries without touching the timesheet."""
        entries = await self.load_week_entries(employee_id, week_start)
        return split_weekly_hours(entries, self.policy)

    async def summarize(self, employee_id: UUID, start: date, end: date) -> HoursSummary:
        """Regular, overtime and PTO hours of entries dated inside [start, end].

        Each week touching the range is split in full and only the entries
        dated inside the range are counted, so overtime matches what the
        weekly timesheets report. Entries count whatever their week's status.

        Raises:
            HRMSValidationError: If end is before start
        """
        if end < start:
            raise HRMSValidationError(
                "Summary end date cannot be before its start date",
                start_date=start,
                end_date=end,
            )

        summary = HoursSummary(employee_id=employee_id, start_date=start, end_date=end)
        monday, _ = week_bounds(start)
        while monday <= end:
            weekly = await self.compute_week(employee_id, monday)
            for allocation in weekly.allocations:
                if start <= allocation.work_date <= end:
                    summary.add(allocation)
            monday += timedelta(days=7)
        return summary

    async def recompute(
        self,
        employee_id: UUID,
        week_start: date,
        revert_rejected: bool = False,
    ) -> Timesheet:
        """Rewrite the week's totals from its entries.

        Args:
            employee_id: Timesheet owner
            week_start: Any date inside the week
            revert_rejected: Move a rejected timesheet back to draft (entry edits)

        Raises:
            TimesheetLockedError: If the timesheet is submitted or approved
        """
        # Pending entry writes must be visible to the reload below
        await self.session.flush()

        timesheet = await self.get_or_create(employee_id, week_start)
        weekly = await self.compute_week(employee_id, timesheet.week_start)

        values = {
            "total_hours": weekly.total,
            "regular_hours": weekly.regular,
            "overtime_hours": weekly.overtime,
            "pto_hours": weekly.pto,
        }
        if revert_rejected:
            values["status"] = TimesheetStatus.DRAFT.value

        result = await self.session.execute(
            update(Timesheet)
            .where(
                Timesheet.timesheet_id == timesheet.timesheet_id,
                Timesheet.status.in_(sorted(TimesheetStateMachine.ENTRIES_MUTABLE)),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(timesheet)

        if result.rowcount == 0:
            raise TimesheetLockedError(employee_id, timesheet.week_start, timesheet.status)

        return timesheet
