"""Clock-in/clock-out endpoints."""

from fastapi import APIRouter, status

from hrms_payroll.api.dependencies import Caller, DbSession
from hrms_payroll.api.schemas import (
    ClockInRequest,
    ClockOutRequest,
    ClockSessionResponse,
    ErrorResponse,
)
from hrms_payroll.services.clock_service import ClockService

router = APIRouter(prefix="/clock", tags=["clock"])


@router.post(
    "/in",
    response_model=ClockSessionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def clock_in(
    db: DbSession,
    caller: Caller,
    payload: ClockInRequest,
) -> ClockSessionResponse:
    """Open a clock session for the caller."""
    service = ClockService(db)
    session = await service.clock_in(caller.user_id, at=payload.at, notes=payload.notes)
    await db.commit()
    return ClockSessionResponse.model_validate(session)


@router.post(
    "/out",
    response_model=ClockSessionResponse,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def clock_out(
    db: DbSession,
    caller: Caller,
    payload: ClockOutRequest,
) -> ClockSessionResponse:
    """Close the caller's open clock session and record its hours."""
    service = ClockService(db)
    session = await service.clock_out(
        caller.user_id,
        payload.session_id,
        at=payload.at,
        break_minutes=payload.break_minutes,
        notes=payload.notes,
    )
    await db.commit()
    return ClockSessionResponse.model_validate(session)


@router.get(
    "/active",
    response_model=ClockSessionResponse | None,
)
async def get_active_session(
    db: DbSession,
    caller: Caller,
) -> ClockSessionResponse | None:
    """The caller's open clock session, if any."""
    session = await ClockService(db).get_open_session(caller.user_id)
    if session is None:
        return None
    return ClockSessionResponse.model_validate(session)
