"""Tests for the timesheet approval workflow."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select, update

from hrms_payroll.models import AuditEvent, Timesheet
from hrms_payroll.services.directory import CallerIdentity, Role
from hrms_payroll.services.errors import (
    EmptyTimesheetError,
    InvalidTransitionError,
    MissingReasonError,
    NotAuthorizedError,
    NotOwnerError,
    OpenClockSessionError,
    TimesheetNotFoundError,
)

from .conftest import WEEK_START, day, log_week

pytestmark = pytest.mark.asyncio


async def submitted_week(entry_service, approval_service, employee_id, hours=None):
    await log_week(entry_service, employee_id, hours or ["8", "8", "8", "8", "8"])
    return await approval_service.submit_week(employee_id, WEEK_START)


class TestSubmit:
    """Test submission."""

    async def test_submit_week(self, entry_service, approval_service, employee):
        timesheet = await submitted_week(entry_service, approval_service, employee.employee_id)

        assert timesheet.status == "submitted"
        assert timesheet.submitted_at is not None
        assert timesheet.total_hours == Decimal("40.00")

    async def test_empty_timesheet_cannot_be_submitted(self, approval_service, employee):
        """A week with no hours stays draft."""
        with pytest.raises(EmptyTimesheetError):
            await approval_service.submit_week(employee.employee_id, WEEK_START)

        timesheet = await approval_service.find_timesheet(employee.employee_id, WEEK_START)
        assert timesheet.status == "draft"

    async def test_zero_hour_entries_are_still_empty(
        self, entry_service, approval_service, employee
    ):
        await entry_service.upsert_entry(employee.employee_id, day(0), None, "0")

        with pytest.raises(EmptyTimesheetError):
            await approval_service.submit_week(employee.employee_id, WEEK_START)

    async def test_only_owner_submits(
        self, entry_service, aggregator, approval_service, employee, coworker
    ):
        await log_week(entry_service, employee.employee_id, ["8"])
        timesheet = await aggregator.get_for_week(employee.employee_id, WEEK_START)

        with pytest.raises(NotOwnerError):
            await approval_service.submit(timesheet.timesheet_id, coworker.employee_id)

    async def test_submit_twice(self, entry_service, approval_service, employee):
        timesheet = await submitted_week(entry_service, approval_service, employee.employee_id)

        with pytest.raises(InvalidTransitionError):
            await approval_service.submit(timesheet.timesheet_id, employee.employee_id)

    async def test_submit_unknown_timesheet(self, approval_service, employee):
        with pytest.raises(TimesheetNotFoundError):
            await approval_service.submit(uuid4(), employee.employee_id)

    async def test_submit_writes_audit_event(
        self, session, entry_service, approval_service, employee
    ):
        timesheet = await submitted_week(entry_service, approval_service, employee.employee_id)
        await session.flush()

        events = (
            await session.execute(
                select(AuditEvent).where(AuditEvent.entity_id == timesheet.timesheet_id)
            )
        ).scalars().all()

        assert [e.action for e in events] == ["submitted"]
        assert events[0].actor_id == employee.employee_id
        assert events[0].details["total_hours"] == "40.00"


class TestApprove:
    """Test approval."""

    async def test_manager_approves_report(
        self, entry_service, approval_service, employee, manager_caller
    ):
        timesheet = await submitted_week(entry_service, approval_service, employee.employee_id)

        approved = await approval_service.approve(timesheet.timesheet_id, manager_caller)

        assert approved.status == "approved"
        assert approved.reviewed_by == manager_caller.user_id
        assert approved.reviewed_at is not None

    async def test_hr_approves_anyone(
        self, entry_service, approval_service, employee, hr_caller
    ):
        timesheet = await submitted_week(entry_service, approval_service, employee.employee_id)

        approved = await approval_service.approve(timesheet.timesheet_id, hr_caller)

        assert approved.status == "approved"

    @pytest.mark.parametrize("status", ["draft", "rejected", "approved"])
    async def test_approve_only_from_submitted(
        self, session, entry_service, aggregator, approval_service, employee, manager_caller, status
    ):
        """Approval from any status other than submitted fails and changes nothing."""
        await log_week(entry_service, employee.employee_id, ["8"])
        timesheet = await aggregator.get_for_week(employee.employee_id, WEEK_START)
        await session.execute(
            update(Timesheet)
            .where(Timesheet.timesheet_id == timesheet.timesheet_id)
            .values(status=status)
        )

        with pytest.raises(InvalidTransitionError):
            await approval_service.approve(timesheet.timesheet_id, manager_caller)

        reloaded = await approval_service.get_timesheet(timesheet.timesheet_id)
        assert reloaded.status == status
        assert reloaded.reviewed_by is None

    async def test_self_review_forbidden_even_for_hr(
        self, entry_service, approval_service, employee
    ):
        timesheet = await submitted_week(entry_service, approval_service, employee.employee_id)
        self_reviewer = CallerIdentity(user_id=employee.employee_id, role=Role.HR)

        with pytest.raises(NotAuthorizedError):
            await approval_service.approve(timesheet.timesheet_id, self_reviewer)

    async def test_peer_cannot_approve(
        self, entry_service, approval_service, employee, coworker
    ):
        timesheet = await submitted_week(entry_service, approval_service, employee.employee_id)
        peer = CallerIdentity(user_id=coworker.employee_id, role=Role.MANAGER)

        with pytest.raises(NotAuthorizedError):
            await approval_service.approve(timesheet.timesheet_id, peer)

        reloaded = await approval_service.get_timesheet(timesheet.timesheet_id)
        assert reloaded.status == "submitted"

    async def test_lost_race_raises(
        self, session, entry_service, approval_service, employee, manager_caller
    ):
        """A reviewer acting on a stale read loses to the one who got there first."""
        timesheet = await submitted_week(entry_service, approval_service, employee.employee_id)
        stale = await approval_service.get_timesheet(timesheet.timesheet_id)

        # A second reviewer rejects in between
        await session.execute(
            update(Timesheet)
            .where(Timesheet.timesheet_id == timesheet.timesheet_id)
            .values(status="rejected")
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(InvalidTransitionError):
            await approval_service._compare_and_set(stale, "approved", status="approved")

        reloaded = await approval_service.get_timesheet(timesheet.timesheet_id)
        assert reloaded.status == "rejected"


class TestReject:
    """Test rejection and resubmission."""

    @pytest.mark.parametrize("reason", ["", "   "])
    async def test_reason_required(
        self, entry_service, approval_service, employee, manager_caller, reason
    ):
        timesheet = await submitted_week(entry_service, approval_service, employee.employee_id)

        with pytest.raises(MissingReasonError):
            await approval_service.reject(timesheet.timesheet_id, manager_caller, reason)

    async def test_reject_edit_resubmit(
        self, entry_service, approval_service, employee, manager_caller
    ):
        """Rejected for missing Friday hours, fixed, resubmitted and approved."""
        timesheet = await submitted_week(
            entry_service, approval_service, employee.employee_id, ["8", "8", "8", "8"]
        )
        assert timesheet.total_hours == Decimal("32.00")

        rejected = await approval_service.reject(
            timesheet.timesheet_id, manager_caller, "missing Friday hours"
        )
        assert rejected.status == "rejected"
        assert rejected.rejection_reason == "missing Friday hours"

        # Editing a rejected week reverts it to draft
        await entry_service.upsert_entry(employee.employee_id, day(4), None, "8")
        edited = await approval_service.get_timesheet(timesheet.timesheet_id)
        assert edited.status == "draft"
        assert edited.total_hours == Decimal("40.00")

        resubmitted = await approval_service.submit(timesheet.timesheet_id, employee.employee_id)
        assert resubmitted.status == "submitted"
        assert resubmitted.rejection_reason is None

        approved = await approval_service.approve(timesheet.timesheet_id, manager_caller)
        assert approved.status == "approved"

    async def test_resubmit_without_edits(
        self, entry_service, approval_service, employee, manager_caller
    ):
        timesheet = await submitted_week(entry_service, approval_service, employee.employee_id)
        await approval_service.reject(timesheet.timesheet_id, manager_caller, "check totals")

        resubmitted = await approval_service.submit(timesheet.timesheet_id, employee.employee_id)

        assert resubmitted.status == "submitted"

    async def test_cannot_reject_draft(
        self, entry_service, aggregator, approval_service, employee, manager_caller
    ):
        await log_week(entry_service, employee.employee_id, ["8"])
        timesheet = await aggregator.get_for_week(employee.employee_id, WEEK_START)

        with pytest.raises(InvalidTransitionError):
            await approval_service.reject(timesheet.timesheet_id, manager_caller, "no")


class TestQueries:
    """Test pending lists and detail views."""

    async def test_list_pending_for_manager(
        self,
        entry_service,
        approval_service,
        employee,
        coworker,
        manager_caller,
        employee_caller,
        hr_caller,
    ):
        await submitted_week(entry_service, approval_service, employee.employee_id)
        await submitted_week(entry_service, approval_service, coworker.employee_id)

        assert len(await approval_service.list_pending(manager_caller)) == 2
        assert len(await approval_service.list_pending(hr_caller)) == 2
        assert await approval_service.list_pending(employee_caller) == []

    async def test_detail_includes_entries(self, entry_service, approval_service, employee):
        timesheet = await submitted_week(
            entry_service, approval_service, employee.employee_id, ["8", "7.5"]
        )

        detail = await approval_service.get_timesheet_detail(timesheet.timesheet_id)

        assert detail.timesheet.timesheet_id == timesheet.timesheet_id
        assert [e.hours for e in detail.entries] == [Decimal("8.00"), Decimal("7.50")]

    async def test_ensure_can_view(
        self, entry_service, approval_service, employee, coworker, manager_caller
    ):
        timesheet = await submitted_week(entry_service, approval_service, employee.employee_id)

        await approval_service.ensure_can_view(timesheet, manager_caller)
        with pytest.raises(NotAuthorizedError):
            await approval_service.ensure_can_view(
                timesheet, CallerIdentity(user_id=coworker.employee_id)
            )


class TestOpenClockSessions:
    """Test that a week with an open clock session cannot be locked."""

    async def test_open_session_blocks_submit(
        self, clock_service, entry_service, approval_service, employee
    ):
        await log_week(entry_service, employee.employee_id, ["8"])
        opened = await clock_service.clock_in(
            employee.employee_id, at=datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc)
        )

        with pytest.raises(OpenClockSessionError) as exc_info:
            await approval_service.submit_week(employee.employee_id, WEEK_START)

        assert exc_info.value.code == "OPEN_CLOCK_SESSION"
        assert exc_info.value.context["session_id"] == str(opened.clock_session_id)
        timesheet = await approval_service.find_timesheet(employee.employee_id, WEEK_START)
        assert timesheet.status == "draft"

    async def test_clock_out_then_submit_approve_and_clock_in_next_week(
        self, clock_service, entry_service, approval_service, employee, manager_caller
    ):
        """The clock stays usable after the week it was used in is approved."""
        await log_week(entry_service, employee.employee_id, ["8"])
        opened = await clock_service.clock_in(
            employee.employee_id, at=datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc)
        )
        with pytest.raises(OpenClockSessionError):
            await approval_service.submit_week(employee.employee_id, WEEK_START)

        await clock_service.clock_out(
            employee.employee_id,
            opened.clock_session_id,
            at=datetime(2024, 1, 2, 17, 0, tzinfo=timezone.utc),
        )
        submitted = await approval_service.submit_week(employee.employee_id, WEEK_START)
        assert submitted.total_hours == Decimal("16.00")
        await approval_service.approve(submitted.timesheet_id, manager_caller)

        next_week = await clock_service.clock_in(
            employee.employee_id, at=datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)
        )
        assert next_week.is_open

    async def test_open_session_in_later_week_does_not_block(
        self, clock_service, entry_service, approval_service, employee
    ):
        await log_week(entry_service, employee.employee_id, ["8"])
        await clock_service.clock_in(
            employee.employee_id, at=datetime(2024, 1, 9, 9, 0, tzinfo=timezone.utc)
        )

        timesheet = await approval_service.submit_week(employee.employee_id, WEEK_START)

        assert timesheet.status == "submitted"
