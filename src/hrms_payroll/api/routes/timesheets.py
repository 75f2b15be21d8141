"""Timesheet and approval endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, status

from hrms_payroll.api.dependencies import Caller, DbSession
from hrms_payroll.api.schemas import (
    ErrorResponse,
    RejectRequest,
    TimeEntryResponse,
    TimesheetDetailResponse,
    TimesheetListResponse,
    TimesheetResponse,
)
from hrms_payroll.services.approval_service import TimesheetApprovalService
from hrms_payroll.services.directory import SqlEmployeeDirectory, ensure_can_view_employee

router = APIRouter(prefix="/timesheets", tags=["timesheets"])


@router.get(
    "",
    response_model=TimesheetResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def find_timesheet(
    db: DbSession,
    caller: Caller,
    week_start: date,
    employee_id: UUID | None = None,
) -> TimesheetResponse:
    """Get an employee's timesheet for the week containing week_start."""
    target = employee_id or caller.user_id
    await ensure_can_view_employee(SqlEmployeeDirectory(db), caller, target)

    timesheet = await TimesheetApprovalService(db).find_timesheet(target, week_start)
    if timesheet is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Timesheet not found",
        )
    return TimesheetResponse.model_validate(timesheet)


@router.get(
    "/pending",
    response_model=TimesheetListResponse,
)
async def list_pending_timesheets(
    db: DbSession,
    caller: Caller,
) -> TimesheetListResponse:
    """Submitted timesheets awaiting the caller's review."""
    timesheets = await TimesheetApprovalService(db).list_pending(caller)
    return TimesheetListResponse(
        items=[TimesheetResponse.model_validate(ts) for ts in timesheets],
        total=len(timesheets),
    )


@router.post(
    "/weeks/{week_start}/submit",
    response_model=TimesheetResponse,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def submit_week(
    db: DbSession,
    caller: Caller,
    week_start: Annotated[date, Path()],
) -> TimesheetResponse:
    """Submit the caller's week, creating its timesheet if needed."""
    timesheet = await TimesheetApprovalService(db).submit_week(caller.user_id, week_start)
    await db.commit()
    return TimesheetResponse.model_validate(timesheet)


@router.get(
    "/{timesheet_id}",
    response_model=TimesheetDetailResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_timesheet(
    db: DbSession,
    caller: Caller,
    timesheet_id: Annotated[UUID, Path()],
) -> TimesheetDetailResponse:
    """Get a timesheet with its entries."""
    service = TimesheetApprovalService(db)
    detail = await service.get_timesheet_detail(timesheet_id)
    await service.ensure_can_view(detail.timesheet, caller)

    return TimesheetDetailResponse(
        **TimesheetResponse.model_validate(detail.timesheet).model_dump(),
        entries=[TimeEntryResponse.model_validate(e) for e in detail.entries],
    )


@router.post(
    "/{timesheet_id}/submit",
    response_model=TimesheetResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def submit_timesheet(
    db: DbSession,
    caller: Caller,
    timesheet_id: Annotated[UUID, Path()],
) -> TimesheetResponse:
    """Submit the caller's timesheet for review."""
    timesheet = await TimesheetApprovalService(db).submit(timesheet_id, caller.user_id)
    await db.commit()
    return TimesheetResponse.model_validate(timesheet)


@router.post(
    "/{timesheet_id}/approve",
    response_model=TimesheetResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def approve_timesheet(
    db: DbSession,
    caller: Caller,
    timesheet_id: Annotated[UUID, Path()],
) -> TimesheetResponse:
    """Approve a submitted timesheet."""
    timesheet = await TimesheetApprovalService(db).approve(timesheet_id, caller)
    await db.commit()
    return TimesheetResponse.model_validate(timesheet)


@router.post(
    "/{timesheet_id}/reject",
    response_model=TimesheetResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def reject_timesheet(
    db: DbSession,
    caller: Caller,
    timesheet_id: Annotated[UUID, Path()],
    payload: RejectRequest,
) -> TimesheetResponse:
    """Reject a submitted timesheet with a reason."""
    timesheet = await TimesheetApprovalService(db).reject(timesheet_id, caller, payload.reason)
    await db.commit()
    return TimesheetResponse.model_validate(timesheet)
