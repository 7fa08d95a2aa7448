"""API routes."""

from workforce_engine.api.routes.assignments import router as assignments_router
from workforce_engine.api.routes.health import router as health_router
from workforce_engine.api.routes.payroll import router as payroll_router

__all__ = ["assignments_router", "health_router", "payroll_router"]
