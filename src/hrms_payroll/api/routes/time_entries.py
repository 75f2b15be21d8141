"""Time entry endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from hrms_payroll.api.dependencies import Caller, DbSession
from hrms_payroll.api.schemas import (
    BulkTimeEntryRequest,
    ErrorResponse,
    HoursSummaryResponse,
    TimeEntryListResponse,
    TimeEntryResponse,
    TimeEntryUpsert,
)
from hrms_payroll.services.aggregator import TimesheetAggregator
from hrms_payroll.services.directory import SqlEmployeeDirectory, ensure_can_view_employee
from hrms_payroll.services.time_entry_service import EntryInput, TimeEntryService

router = APIRouter(prefix="/time-entries", tags=["time-entries"])


@router.put(
    "",
    response_model=TimeEntryResponse,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def upsert_time_entry(
    db: DbSession,
    caller: Caller,
    payload: TimeEntryUpsert,
) -> TimeEntryResponse:
    """Create or replace the caller's entry for a date and project."""
    entry = await TimeEntryService(db).upsert_entry(
        caller.user_id,
        payload.work_date,
        payload.project_id,
        payload.hours,
        notes=payload.notes,
        entry_type=payload.entry_type,
    )
    await db.commit()
    return TimeEntryResponse.model_validate(entry)


@router.post(
    "/bulk",
    response_model=TimeEntryListResponse,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def bulk_upsert_time_entries(
    db: DbSession,
    caller: Caller,
    payload: BulkTimeEntryRequest,
) -> TimeEntryListResponse:
    """Save a batch of entries; if any item is invalid nothing is saved."""
    entries = await TimeEntryService(db).bulk_upsert(
        caller.user_id,
        [
            EntryInput(
                work_date=item.work_date,
                hours=item.hours,
                project_id=item.project_id,
                entry_type=item.entry_type,
                notes=item.notes,
            )
            for item in payload.entries
        ],
    )
    await db.commit()
    return TimeEntryListResponse(
        items=[TimeEntryResponse.model_validate(e) for e in entries],
        total=len(entries),
    )


@router.get(
    "/summary",
    response_model=HoursSummaryResponse,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def get_hours_summary(
    db: DbSession,
    caller: Caller,
    start: Annotated[date, Query()],
    end: Annotated[date, Query()],
    employee_id: UUID | None = None,
) -> HoursSummaryResponse:
    """Regular, overtime and PTO hours between two dates, inclusive."""
    target = employee_id or caller.user_id
    await ensure_can_view_employee(SqlEmployeeDirectory(db), caller, target)

    summary = await TimesheetAggregator(db).summarize(target, start, end)
    return HoursSummaryResponse.model_validate(summary)

@router.delete(
    "/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def delete_time_entry(
    db: DbSession,
    caller: Caller,
    entry_id: Annotated[UUID, Path()],
) -> None:
    """Delete an entry. Admin and HR may delete any employee's entry."""
    owner = None if caller.is_privileged else caller.user_id
    await TimeEntryService(db).delete_entry(entry_id, employee_id=owner)
    await db.commit()


@router.get(
    "",
    response_model=TimeEntryListResponse,
    responses={403: {"model": ErrorResponse}},
)
async def list_time_entries(
    db: DbSession,
    caller: Caller,
    employee_id: UUID | None = None,
    start: date | None = None,
    end: date | None = None,
) -> TimeEntryListResponse:
    """List entries for the caller, or for an employee the caller may view."""
    target = employee_id or caller.user_id
    await ensure_can_view_employee(SqlEmployeeDirectory(db), caller, target)

    entries = await TimeEntryService(db).list_entries(target, start, end)
    return TimeEntryListResponse(
        items=[TimeEntryResponse.model_validate(e) for e in entries],
        total=len(entries),
    )
