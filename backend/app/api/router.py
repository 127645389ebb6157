"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from app.api.routes import auth, users, buses, schedules, search, bookings, payments

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(buses.router)
api_router.include_router(schedules.router)
api_router.include_router(search.router)
api_router.include_router(bookings.router)
api_router.include_router(payments.router)
