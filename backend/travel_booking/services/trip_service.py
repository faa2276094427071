"""
Trip service handling catalogue CRUD and search.
Seat inventory changes go through the seat store.
"""

from datetime import date
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from travel_booking.core.config import get_settings
from travel_booking.core.exceptions import (
    BookingError,
    NotFoundError,
    TripHasActiveBookingsError,
    ValidationError,
)
from travel_booking.core.logging import get_logger
from travel_booking.models.booking import Booking, STATUS_CONFIRMED
from travel_booking.models.trip import Trip
from travel_booking.schemas.trip import TripCreate, TripUpdate
from travel_booking.services.seat_store import load_trip, lock_trip, resize_seats

logger = get_logger(__name__)
settings = get_settings()


def _check_seat_limit(total_seats: int) -> None:
    if total_seats > settings.MAX_SEATS_PER_TRIP:
        raise ValidationError(f"A trip can have at most {settings.MAX_SEATS_PER_TRIP} seats")


def _check_route(origin: str, destination: str) -> None:
    if origin.strip().lower() == destination.strip().lower():
        raise ValidationError("Origin and destination must differ")


async def create_trip(db: AsyncSession, trip_data: TripCreate) -> Trip:
    """Create a trip with `Seat 1..N`, all unbooked."""
    _check_seat_limit(trip_data.total_seats)
    _check_route(trip_data.origin, trip_data.destination)

    trip = Trip(
        origin=trip_data.origin.strip(),
        destination=trip_data.destination.strip(),
        departure_date=trip_data.departure_date,
        departure_time=trip_data.departure_time,
        price=trip_data.price,
        total_seats=trip_data.total_seats,
        seats=[],
    )
    resize_seats(trip, trip_data.total_seats)
    db.add(trip)
    await db.commit()
    await db.refresh(trip)

    logger.info(
        "trip_created",
        trip_id=trip.id,
        origin=trip.origin,
        destination=trip.destination,
        seats=trip.total_seats,
    )
    return trip


async def get_trip(db: AsyncSession, trip_id: int) -> Trip:
    """Get a single trip with its full seat sequence."""
    trip = await load_trip(db, trip_id)
    if not trip:
        raise NotFoundError(f"Trip {trip_id} not found")
    return trip


async def list_trips(
    db: AsyncSession,
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    departure_date: Optional[date] = None,
) -> list[Trip]:
    """
    Search trips.
    origin/destination match case-insensitive literal substrings (% and _ included),
    the date matches exactly.
    Ordered by departure date then time (ix_trips_departure).
    """
    query = select(Trip)

    if origin:
        query = query.where(Trip.origin.icontains(origin.strip(), autoescape=True))
    if destination:
        query = query.where(Trip.destination.icontains(destination.strip(), autoescape=True))
    if departure_date:
        query = query.where(Trip.departure_date == departure_date)

    result = await db.execute(
        query.order_by(Trip.departure_date.asc(), Trip.departure_time.asc(), Trip.id.asc())
    )
    return list(result.scalars().all())


async def update_trip(db: AsyncSession, trip_id: int, trip_data: TripUpdate) -> Trip:
    """
    Apply a partial update. A new `total_seats` resizes the seat sequence;
    shrinking never removes a booked seat.
    """
    changes = trip_data.model_dump(exclude_unset=True, exclude_none=True)
    new_total = changes.pop("total_seats", None)
    if new_total is not None:
        _check_seat_limit(new_total)

    try:
        trip = await lock_trip(db, trip_id, operation="update")
        _check_route(changes.get("origin", trip.origin), changes.get("destination", trip.destination))

        for field, value in changes.items():
            setattr(trip, field, value.strip() if isinstance(value, str) else value)

        if new_total is not None and new_total != len(trip.seats):
            resize_seats(trip, new_total)

        await db.commit()
    except BookingError:
        await db.rollback()
        raise

    logger.info(
        "trip_updated",
        trip_id=trip.id,
        fields=sorted(changes),
        requested_seats=new_total,
        total_seats=trip.total_seats,
    )
    return trip


async def delete_trip(db: AsyncSession, trip_id: int) -> None:
    """
    Delete a trip and its seats.

    Refused while confirmed bookings reference the trip. Cancelled bookings
    are kept (they carry their own seat snapshot) with trip_id cleared.
    """
    try:
        trip = await lock_trip(db, trip_id, operation="delete")
        active = await db.scalar(
            select(func.count())
            .select_from(Booking)
            .where(Booking.trip_id == trip_id, Booking.status == STATUS_CONFIRMED)
        )
        if active:
            logger.warning("trip_delete_refused", trip_id=trip_id, active_bookings=active)
            raise TripHasActiveBookingsError(
                f"Trip {trip_id} has {active} active booking(s); cancel them first"
            )
    except BookingError:
        await db.rollback()
        raise

    await db.execute(update(Booking).where(Booking.trip_id == trip_id).values(trip_id=None))
    await db.delete(trip)
    await db.commit()

    logger.info("trip_deleted", trip_id=trip_id)
