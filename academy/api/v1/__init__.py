from fastapi import APIRouter
from academy.api.v1.admin import router as admin_router
from academy.api.v1.cron import router as cron_router
from academy.api.v1.enrollments import router as enrollments_router
from academy.api.v1.payments import router as payments_router

__all__ = [
    "admin_router",
    "cron_router",
    "enrollments_router",
    "payments_router",
]
