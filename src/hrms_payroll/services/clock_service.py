"""Clock session store: clock-in/clock-out lifecycle."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.calculators.types import EntryType, quantize_hours
from hrms_payroll.config import Settings, get_settings
from hrms_payroll.database import dialect_insert
from hrms_payroll.models import DEFAULT_PROJECT, OPEN_SESSION_PREDICATE, ClockSession, TimeEntry
from hrms_payroll.services.aggregator import TimesheetAggregator
from hrms_payroll.services.errors import (
    AlreadyClockedInError,
    ClockSessionNotFoundError,
    InvalidHoursError,
    InvalidOrderError,
    NoOpenSessionError,
    NotOwnerError,
)
from hrms_payroll.timeutils import ensure_utc, local_date, utcnow

logger = logging.getLogger(__name__)

MAX_SESSION = timedelta(hours=24)


class ClockService:
    """Service for clock sessions.

    At most one open session per employee is enforced by a partial unique
    index; clock_in detects the conflict with an idempotent insert so two
    concurrent clock-ins cannot both succeed. Closing a session emits one
    clock-sourced time entry dated to the clock-in local date, so a session
    spanning midnight belongs entirely to the day it started.
    """

    def __init__(
        self,
        session: AsyncSession,
        aggregator: TimesheetAggregator | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.aggregator = aggregator or TimesheetAggregator(session)

    def work_date_for(self, instant: datetime) -> date:
        """Calendar date an instant is attributed to."""
        return local_date(instant, self.settings.local_timezone)

    async def clock_in(
        self,
        employee_id: UUID,
        at: datetime | None = None,
        notes: str | None = None,
    ) -> ClockSession:
        """Open a clock session.

        Raises:
            TimesheetLockedError: If the clock-in week is submitted or approved
            AlreadyClockedInError: If the employee already has an open session
        """
        clock_in_at = ensure_utc(at) if at is not None else utcnow()
        await self.aggregator.ensure_editable(employee_id, self.work_date_for(clock_in_at))

        clock_session_id = uuid4()
        stmt = (
            dialect_insert(self.session, ClockSession)
            .values(
                clock_session_id=clock_session_id,
                employee_id=employee_id,
                clock_in=clock_in_at,
                break_minutes=0,
                status="open",
                notes=notes,
            )
            .on_conflict_do_nothing(
                index_elements=["employee_id"],
                index_where=OPEN_SESSION_PREDICATE,
            )
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise AlreadyClockedInError(employee_id)

        logger.info("Employee %s clocked in at %s", employee_id, clock_in_at.isoformat())
        return await self._load(clock_session_id)

    async def clock_out(
        self,
        employee_id: UUID,
        session_id: UUID,
        at: datetime | None = None,
        break_minutes: int = 0,
        notes: str | None = None,
    ) -> ClockSession:
        """Close an open clock session and record its hours.

        Returns the completed session.

        Raises:
            NoOpenSessionError: If the session is missing, not owned or closed
            InvalidOrderError: If at is earlier than the clock-in time
            InvalidHoursError: If the session exceeds 24 hours or the break
                exceeds the session
            TimesheetLockedError: If the clock-in week is submitted or approved
        """
        clock = await self._load(session_id)
        if clock is None or clock.employee_id != employee_id or not clock.is_open:
            raise NoOpenSessionError(employee_id, session_id)

        clock_out_at = ensure_utc(at) if at is not None else utcnow()
        clock_in_at = ensure_utc(clock.clock_in)
        if clock_out_at < clock_in_at:
            raise InvalidOrderError(
                "Clock-out cannot be earlier than clock-in",
                clock_in=clock_in_at.isoformat(),
                clock_out=clock_out_at.isoformat(),
            )

        duration = clock_out_at - clock_in_at
        if duration > MAX_SESSION:
            raise InvalidHoursError(
                "A clock session cannot exceed 24 hours",
                session_id=session_id,
            )
        if break_minutes < 0 or timedelta(minutes=break_minutes) > duration:
            raise InvalidHoursError(
                "Break must be between zero and the session length",
                break_minutes=break_minutes,
            )

        worked = duration - timedelta(minutes=break_minutes)
        hours = quantize_hours(Decimal(int(worked.total_seconds())) / Decimal(3600))
        work_date = self.work_date_for(clock_in_at)
        await self.aggregator.ensure_editable(employee_id, work_date)

        values = {
            "clock_out": clock_out_at,
            "break_minutes": break_minutes,
            "total_hours": hours,
            "status": "completed",
        }
        if notes is not None:
            values["notes"] = notes

        result = await self.session.execute(
            update(ClockSession)
            .where(
                ClockSession.clock_session_id == session_id,
                ClockSession.clock_out.is_(None),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Closed concurrently
            raise NoOpenSessionError(employee_id, session_id)

        self.session.add(
            TimeEntry(
                employee_id=employee_id,
                work_date=work_date,
                project_id=DEFAULT_PROJECT,
                hours=hours,
                entry_type=EntryType.REGULAR.value,
                notes=notes if notes is not None else clock.notes,
                source="clock",
                clock_session_id=session_id,
            )
        )
        await self.aggregator.recompute(employee_id, work_date, revert_rejected=True)

        logger.info(
            "Employee %s clocked out of session %s: %s hours on %s",
            employee_id,
            session_id,
            hours,
            work_date,
        )
        await self.session.refresh(clock)
        return clock

    async def get_open_session(self, employee_id: UUID) -> ClockSession | None:
        result = await self.session.execute(
            select(ClockSession).where(
                ClockSession.employee_id == employee_id,
                ClockSession.clock_out.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def list_sessions(
        self,
        employee_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> list[ClockSession]:
        """Sessions clocked in between start and end (UTC dates, inclusive)."""
        stmt = select(ClockSession).where(ClockSession.employee_id == employee_id)
        if start is not None:
            stmt = stmt.where(
                ClockSession.clock_in >= datetime.combine(start, time.min, tzinfo=timezone.utc)
            )
        if end is not None:
            stmt = stmt.where(
                ClockSession.clock_in
                < datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)
            )
        result = await self.session.execute(stmt.order_by(ClockSession.clock_in))
        return list(result.scalars().all())

    async def amend_notes(
        self,
        session_id: UUID,
        employee_id: UUID,
        notes: str | None,
    ) -> ClockSession:
        """Replace a session's notes while its week is still editable."""
        clock = await self._load(session_id)
        if clock is None:
            raise ClockSessionNotFoundError(session_id)
        if clock.employee_id != employee_id:
            raise NotOwnerError(employee_id, "clock session")

        await self.aggregator.ensure_editable(
            employee_id, self.work_date_for(ensure_utc(clock.clock_in))
        )
        clock.notes = notes
        await self.session.flush()
        return clock

    async def _load(self, session_id: UUID) -> ClockSession | None:
        result = await self.session.execute(
            select(ClockSession)
            .where(ClockSession.clock_session_id == session_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
