"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from maddi.api.routes import admin, billboards, bookings, jobs, notifications

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(billboards.router)
api_router.include_router(bookings.router)
api_router.include_router(admin.router)
api_router.include_router(notifications.router)
api_router.include_router(jobs.router)
