"""Time entry ledger: manual hours per employee, date and project."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.calculators.types import EntryType
from hrms_payroll.database import dialect_insert
from hrms_payroll.models import DEFAULT_PROJECT, MANUAL_ENTRY_PREDICATE, TimeEntry
from hrms_payroll.services.aggregator import TimesheetAggregator
from hrms_payroll.services.errors import (
    BulkValidationError,
    EntryNotFoundError,
    HRMSValidationError,
    InvalidEntryTypeError,
    InvalidHoursError,
    NotOwnerError,
)
from hrms_payroll.services.state_machine import TimesheetStateMachine
from hrms_payroll.timeutils import week_bounds

logger = logging.getLogger(__name__)

MAX_DAILY_HOURS = Decimal("24")
HOURS_INCREMENT = Decimal("0.25")


@dataclass(frozen=True)
class EntryInput:
    """One manual entry of a bulk write."""

    work_date: date
    hours: Decimal
    project_id: str = DEFAULT_PROJECT
    entry_type: str = EntryType.REGULAR.value
    notes: str | None = None


def normalize_hours(hours: Decimal | float | int | str) -> Decimal:
    """Validate an hours quantity: 0 to 24 in quarter-hour steps.

    Raises:
        InvalidHoursError: If hours are outside the range or not a quarter multiple
    """
    try:
        value = Decimal(str(hours))
    except InvalidOperation as exc:
        raise InvalidHoursError(f"Hours value {hours!r} is not a number", hours=str(hours)) from exc

    if not value.is_finite() or value < 0 or value > MAX_DAILY_HOURS:
        raise InvalidHoursError("Hours must be between 0 and 24", hours=str(hours))
    if value % HOURS_INCREMENT != 0:
        raise InvalidHoursError("Hours must be in 0.25 increments", hours=str(hours))
    return value


def validate_entry_type(entry_type: str) -> str:
    if entry_type not in {t.value for t in EntryType}:
        raise InvalidEntryTypeError(entry_type)
    return entry_type


class TimeEntryService:
    """Service for the time entry ledger.

    Manual entries are keyed by (employee, work_date, project): saving the
    same key again replaces the entry. Every mutation is refused while the
    owning week is submitted or approved, and ends with a full recompute of
    that week's timesheet in the same transaction. Editing a rejected week
    moves its timesheet back to draft.
    """

    def __init__(self, session: AsyncSession, aggregator: TimesheetAggregator | None = None):
        self.session = session
        self.aggregator = aggregator or TimesheetAggregator(session)

    async def upsert_entry(
        self,
        employee_id: UUID,
        work_date: date,
        project_id: str | None,
        hours: Decimal | float | int | str,
        notes: str | None = None,
        entry_type: str = EntryType.REGULAR.value,
    ) -> TimeEntry:
        """Create or replace the manual entry for (employee, date, project).

        Raises:
            InvalidHoursError: Hours outside 0-24 or not a quarter-hour multiple
            InvalidEntryTypeError: Unknown entry type
            TimesheetLockedError: The owning week is submitted or approved
        """
        item = EntryInput(
            work_date=work_date,
            hours=normalize_hours(hours),
            project_id=project_id or DEFAULT_PROJECT,
            entry_type=validate_entry_type(entry_type),
            notes=notes,
        )
        await self.aggregator.ensure_editable(employee_id, work_date)

        await self._write_manual(employee_id, item)
        await self.aggregator.recompute(employee_id, work_date, revert_rejected=True)

        logger.info(
            "Saved %s hours (%s) for employee %s on %s project %s",
            item.hours,
            item.entry_type,
            employee_id,
            work_date,
            item.project_id,
        )
        entry = await self._find_manual(employee_id, work_date, item.project_id)
        if entry is None:
            raise RuntimeError("Time entry vanished after upsert")
        return entry

    async def delete_entry(self, entry_id: UUID, employee_id: UUID | None = None) -> None:
        """Delete an entry and recompute its week.

        Raises:
            EntryNotFoundError: The entry does not exist
            NotOwnerError: employee_id is given and does not own the entry
            TimesheetLockedError: The owning week is submitted or approved
        """
        entry = await self.session.get(TimeEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(entry_id)
        if employee_id is not None and entry.employee_id != employee_id:
            raise NotOwnerError(employee_id, "time entry")

        await self.aggregator.ensure_editable(entry.employee_id, entry.work_date)

        owner, work_date = entry.employee_id, entry.work_date
        await self.session.delete(entry)
        await self.aggregator.recompute(owner, work_date, revert_rejected=True)
        logger.info("Deleted time entry %s for employee %s on %s", entry_id, owner, work_date)

    async def bulk_upsert(
        self,
        employee_id: UUID,
        entries: Sequence[EntryInput],
    ) -> list[TimeEntry]:
        """Validate every item, then write all of them or none.

        Raises:
            BulkValidationError: With (index, reason) for every failing item
        """
        failures: list[tuple[int, str]] = []
        validated: list[EntryInput] = []
        seen: dict[tuple[date, str], int] = {}
        week_status: dict[date, str | None] = {}

        for index, raw in enumerate(entries):
            project_id = raw.project_id or DEFAULT_PROJECT
            try:
                item = EntryInput(
                    work_date=raw.work_date,
                    hours=normalize_hours(raw.hours),
                    project_id=project_id,
                    entry_type=validate_entry_type(raw.entry_type),
                    notes=raw.notes,
                )
            except HRMSValidationError as exc:
                failures.append((index, exc.message))
                continue

            key = (item.work_date, item.project_id)
            if key in seen:
                reason = f"Duplicate of entry {seen[key]} for {item.work_date} {item.project_id}"
                failures.append((index, reason))
                continue
            seen[key] = index

            monday, _ = week_bounds(item.work_date)
            if monday not in week_status:
                timesheet = await self.aggregator.get_for_week(employee_id, monday)
                week_status[monday] = timesheet.status if timesheet is not None else None
            if not TimesheetStateMachine.can_modify_entries(week_status[monday]):
                failures.append((index, f"Week of {monday} is {week_status[monday]}"))
                continue

            validated.append(item)

        if failures:
            raise BulkValidationError(failures)

        for item in validated:
            await self._write_manual(employee_id, item)

        for monday in sorted(week_status):
            await self.aggregator.recompute(employee_id, monday, revert_rejected=True)

        logger.info("Bulk saved %d entries for employee %s", len(validated), employee_id)
        saved = []
        for item in validated:
            entry = await self._find_manual(employee_id, item.work_date, item.project_id)
            if entry is not None:
                saved.append(entry)
        return saved

    async def list_entries(
        self,
        employee_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> list[TimeEntry]:
        stmt = select(TimeEntry).where(TimeEntry.employee_id == employee_id)
        if start is not None:
            stmt = stmt.where(TimeEntry.work_date >= start)
        if end is not None:
            stmt = stmt.where(TimeEntry.work_date <= end)
        result = await self.session.execute(
            stmt.order_by(TimeEntry.work_date, TimeEntry.project_id, TimeEntry.created_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _write_manual(self, employee_id: UUID, item: EntryInput) -> None:
        stmt = dialect_insert(self.session, TimeEntry).values(
            time_entry_id=uuid4(),
            employee_id=employee_id,
            work_date=item.work_date,
            project_id=item.project_id,
            hours=item.hours,
            entry_type=item.entry_type,
            notes=item.notes,
            source="manual",
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["employee_id", "work_date", "project_id"],
            index_where=MANUAL_ENTRY_PREDICATE,
            set_={
                "hours": stmt.excluded.hours,
                "entry_type": stmt.excluded.entry_type,
                "notes": stmt.excluded.notes,
            },
        )
        await self.session.execute(stmt)

    async def _find_manual(
        self,
        employee_id: UUID,
        work_date: date,
        project_id: str,
    ) -> TimeEntry | None:
        result = await self.session.execute(
            select(TimeEntry)
            .where(
                TimeEntry.employee_id == employee_id,
                TimeEntry.work_date == work_date,
                TimeEntry.project_id == project_id,
                TimeEntry.source == "manual",
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
