"""API routes."""

from backoffice_engine.api.routes.enrollments import router as enrollments_router
from backoffice_engine.api.routes.health import router as health_router
from backoffice_engine.api.routes.payroll_runs import adjustments_router
from backoffice_engine.api.routes.payroll_runs import router as payroll_runs_router
from backoffice_engine.api.routes.sms import router as sms_router

__all__ = [
    "adjustments_router",
    "enrollments_router",
    "health_router",
    "payroll_runs_router",
    "sms_router",
]
