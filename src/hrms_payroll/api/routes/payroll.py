"""Payroll period, run and pay stub endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from hrms_payroll.api.dependencies import Caller, DbSession, PayrollAdmin
from hrms_payroll.api.schemas import (
    ErrorResponse,
    PayrollPeriodCreate,
    PayrollPeriodResponse,
    PayrollRunResponse,
    PayStubListResponse,
    PayStubResponse,
)
from hrms_payroll.services.directory import SqlEmployeeDirectory, ensure_can_view_employee
from hrms_payroll.services.payroll_run_service import PayrollRunService

router = APIRouter(tags=["payroll"])


# ============================================================================
# Payroll periods
# ============================================================================


@router.post(
    "/payroll/periods",
    response_model=PayrollPeriodResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_payroll_period(
    db: DbSession,
    admin: PayrollAdmin,
    payload: PayrollPeriodCreate,
) -> PayrollPeriodResponse:
    """Create an open payroll period."""
    period = await PayrollRunService(db).create_period(
        payload.start_date, payload.end_date, payload.pay_date
    )
    await db.commit()
    return PayrollPeriodResponse.model_validate(period)


@router.get(
    "/payroll/periods",
    response_model=list[PayrollPeriodResponse],
    responses={403: {"model": ErrorResponse}},
)
async def list_payroll_periods(
    db: DbSession,
    admin: PayrollAdmin,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[PayrollPeriodResponse]:
    """List payroll periods, newest first."""
    periods = await PayrollRunService(db).list_periods(status_filter)
    return [PayrollPeriodResponse.model_validate(p) for p in periods]


@router.get(
    "/payroll/periods/{period_id}",
    response_model=PayrollPeriodResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_payroll_period(
    db: DbSession,
    admin: PayrollAdmin,
    period_id: Annotated[UUID, Path()],
) -> PayrollPeriodResponse:
    period = await PayrollRunService(db).get_period(period_id)
    return PayrollPeriodResponse.model_validate(period)


@router.post(
    "/payroll/periods/{period_id}/run",
    response_model=PayrollRunResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def run_payroll(
    db: DbSession,
    admin: PayrollAdmin,
    period_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Run payroll for an open period and close it."""
    result = await PayrollRunService(db).run_payroll(period_id, actor_id=admin.user_id)
    return PayrollRunResponse.model_validate(result)


# ============================================================================
# Pay stubs
# ============================================================================


@router.get(
    "/payroll/periods/{period_id}/pay-stubs",
    response_model=PayStubListResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def list_period_pay_stubs(
    db: DbSession,
    admin: PayrollAdmin,
    period_id: Annotated[UUID, Path()],
) -> PayStubListResponse:
    stubs = await PayrollRunService(db).list_pay_stubs_for_period(period_id)
    return PayStubListResponse(
        items=[PayStubResponse.model_validate(s) for s in stubs],
        total=len(stubs),
    )


@router.get(
    "/employees/{employee_id}/pay-stubs",
    response_model=PayStubListResponse,
    responses={403: {"model": ErrorResponse}},
)
async def list_employee_pay_stubs(
    db: DbSession,
    caller: Caller,
    employee_id: Annotated[UUID, Path()],
) -> PayStubListResponse:
    """Pay stubs of one employee, newest period first."""
    await ensure_can_view_employee(SqlEmployeeDirectory(db), caller, employee_id)
    stubs = await PayrollRunService(db).list_pay_stubs_for_employee(employee_id)
    return PayStubListResponse(
        items=[PayStubResponse.model_validate(s) for s in stubs],
        total=len(stubs),
    )


@router.get(
    "/pay-stubs/{pay_stub_id}",
    response_model=PayStubResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_pay_stub(
    db: DbSession,
    caller: Caller,
    pay_stub_id: Annotated[UUID, Path()],
) -> PayStubResponse:
    stub = await PayrollRunService(db).get_pay_stub(pay_stub_id)
    await ensure_can_view_employee(SqlEmployeeDirectory(db), caller, stub.employee_id)
    return PayStubResponse.model_validate(stub)
