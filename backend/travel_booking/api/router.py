"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from travel_booking.api.routes import trips, bookings

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(trips.router)
api_router.include_router(bookings.router)
