"""
Booking endpoints with concurrency-safe seat reservation.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from travel_booking.db.session import get_db
from travel_booking.schemas.booking import BookingCreate, BookingListResponse, BookingResponse
from travel_booking.schemas.user import CurrentUser
from travel_booking.services.booking_service import (
    cancel_booking,
    create_booking,
    get_booking,
    list_for_user,
)
from travel_booking.services.cache_service import invalidate_trip_cache
from travel_booking.core.exceptions import BookingError
from travel_booking.core.metrics import booking_latency, record_booking_attempt
from travel_booking.core.security import get_current_user
from travel_booking.core.config import get_settings
from travel_booking.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Book specific seats on a trip.

    The claim is all-or-nothing: if any seat is missing the request fails
    with 404, if any seat is taken it fails with 409 naming that seat.
    Payment is simulated; only the method tag is stored.
    """
    with booking_latency.time():
        try:
            booking = await create_booking(db, user.id, booking_data)
        except BookingError as e:
            record_booking_attempt(e.code)
            raise
    record_booking_attempt("success")
    await invalidate_trip_cache()
    return booking


@router.get("/my-bookings", response_model=BookingListResponse)
async def list_my_bookings(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's bookings split into upcoming and past, newest first."""
    now = datetime.now(ZoneInfo(settings.TRIP_TIMEZONE))
    partition = await list_for_user(db, user.id, now=now)
    return BookingListResponse(upcoming=partition.upcoming, past=partition.past)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get one booking. Owners and administrators only."""
    return await get_booking(db, booking_id, user)


@router.put("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and release its seats back to the trip."""
    booking = await cancel_booking(db, booking_id, user)
    await invalidate_trip_cache()
    return booking
