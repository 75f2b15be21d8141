"""API routes."""

from hrms_payroll.api.routes.clock import router as clock_router
from hrms_payroll.api.routes.health import router as health_router
from hrms_payroll.api.routes.payroll import router as payroll_router
from hrms_payroll.api.routes.time_entries import router as time_entries_router
from hrms_payroll.api.routes.timesheets import router as timesheets_router

__all__ = [
    "clock_router",
    "health_router",
    "payroll_router",
    "time_entries_router",
    "timesheets_router",
]
