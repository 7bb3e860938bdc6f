"""API routes."""

from pts_allowance.api.routes.health import router as health_router
from pts_allowance.api.routes.payroll import router as payroll_router
from pts_allowance.api.routes.requests import router as requests_router

__all__ = ["health_router", "payroll_router", "requests_router"]
