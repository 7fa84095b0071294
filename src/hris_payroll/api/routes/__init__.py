"""API routes."""

from hris_payroll.api.routes.compensation import router as compensation_router
from hris_payroll.api.routes.health import router as health_router
from hris_payroll.api.routes.overtime import router as overtime_router
from hris_payroll.api.routes.payrolls import router as payrolls_router
from hris_payroll.api.routes.periods import router as periods_router

__all__ = [
    "compensation_router",
    "health_router",
    "overtime_router",
    "payrolls_router",
    "periods_router",
]
