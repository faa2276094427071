"""
Trip endpoints: public browsing/search (cached) and admin management.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from travel_booking.db.session import get_db
from travel_booking.schemas.trip import (
    TripCreate,
    TripDeleteResponse,
    TripListResponse,
    TripResponse,
    TripUpdate,
)
from travel_booking.schemas.user import CurrentUser
from travel_booking.services.trip_service import create_trip, delete_trip, get_trip, list_trips, update_trip
from travel_booking.services.cache_service import get_cached_trips, set_cached_trips, invalidate_trip_cache
from travel_booking.core.security import require_admin
from travel_booking.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/trips", tags=["Trips"])


@router.get("/", response_model=TripListResponse)
async def list_trips_endpoint(
    origin: Optional[str] = Query(None, max_length=255),
    destination: Optional[str] = Query(None, max_length=255),
    departure_date: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
):
    """
    Search trips by origin/destination substring and exact date.
    Results are cached in Redis and invalidated whenever trips or seats change.
    """
    cached = await get_cached_trips(origin, destination, departure_date)
    if cached:
        logger.info("trips_list_cache_hit", origin=origin, destination=destination)
        cached["cached"] = True
        return TripListResponse(**cached)

    trips = await list_trips(db, origin, destination, departure_date)

    response_data = {
        "trips": [TripResponse.model_validate(t).model_dump(mode="json") for t in trips],
        "total": len(trips),
        "cached": False,
    }
    await set_cached_trips(origin, destination, departure_date, response_data)

    return TripListResponse(**response_data)


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip_endpoint(trip_id: int, db: AsyncSession = Depends(get_db)):
    """Get a trip with its full seat map. Not cached (the seat picker needs live flags)."""
    return await get_trip(db, trip_id)


@router.post("/", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip_endpoint(
    trip_data: TripCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a trip and generate its seats. Administrator only."""
    trip = await create_trip(db, trip_data)
    await invalidate_trip_cache()
    return trip


@router.put("/{trip_id}", response_model=TripResponse)
async def update_trip_endpoint(
    trip_id: int,
    trip_data: TripUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Update trip fields and optionally resize the seat map.
    Shrinking stops at the last booked seat instead of removing it.
    """
    trip = await update_trip(db, trip_id, trip_data)
    await invalidate_trip_cache()
    return trip


@router.delete("/{trip_id}", response_model=TripDeleteResponse)
async def delete_trip_endpoint(
    trip_id: int,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete a trip. Refused with 409 while it has confirmed bookings."""
    await delete_trip(db, trip_id)
    await invalidate_trip_cache()
    return TripDeleteResponse(message="Trip deleted successfully", trip_id=trip_id)
