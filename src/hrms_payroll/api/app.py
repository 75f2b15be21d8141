"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hrms_payroll import __version__
from hrms_payroll.api.routes import (
    clock_router,
    health_router,
    payroll_router,
    time_entries_router,
    timesheets_router,
)
from hrms_payroll.database import dispose_db, init_db
from hrms_payroll.services.errors import (
    AuthorizationError,
    HRMSError,
    HRMSValidationError,
    ImmutableRecordError,
    NotFoundError,
    StateConflictError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    init_db()
    yield
    # Shutdown
    await dispose_db()


def status_for(exc: HRMSError) -> int:
    """HTTP status for a domain error."""
    if isinstance(exc, HRMSValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(exc, StateConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, AuthorizationError):
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_400_BAD_REQUEST


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="HRMS Payroll API",
        description="Timesheet lifecycle and payroll run engine",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(HRMSError)
    async def domain_exception_handler(request: Request, exc: HRMSError) -> JSONResponse:
        """Map the domain error hierarchy to status codes."""
        return JSONResponse(
            status_code=status_for(exc),
            content={"detail": exc.message, "code": exc.code, "context": exc.context},
        )

    @app.exception_handler(ImmutableRecordError)
    async def immutable_record_handler(
        request: Request, exc: ImmutableRecordError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "detail": str(exc),
                "code": exc.code,
                "context": {"entity_type": exc.entity_type, "entity_id": str(exc.entity_id)},
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(clock_router, prefix="/api/v1")
    app.include_router(time_entries_router, prefix="/api/v1")
    app.include_router(timesheets_router, prefix="/api/v1")
    app.include_router(payroll_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
