"""
Trip/seat store: the only code that mutates a trip's seat inventory.

CONCURRENCY STRATEGY: Per-trip compare-and-set on `trips.version`
==================================================================

Problem:
  Two customers pick the same seat at the same moment.
  Both read is_booked=false, both flip it, both get a booking.
  Result: Double-booked seat.

Solution:
  Every writer of a trip's seats (claim, release, resize, delete) first wins
  the trip row:

  1. Read the trip and its seats, remembering `version`
  2. UPDATE trips SET version = version + 1
     WHERE id = :trip_id AND version = :read_version
  3. If rows_affected == 0, another writer committed in between -> re-read

  Once step 2 succeeds the seat map read in step 1 is current and stays
  current until our transaction ends: PostgreSQL holds the row lock, and any
  other writer's step 2 either blocks or matches zero rows. Checks made
  against that seat map (is every requested seat free?) and the writes that
  follow are therefore indivisible with respect to other writers on the same
  trip. Writers on different trips never touch the same row.

  Retries re-read with populate_existing under READ COMMITTED, so nothing has
  to be rolled back between attempts. Nothing here commits: the caller owns
  the transaction, which lets a booking row be written in the same commit as
  the seats it claims.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from travel_booking.core.config import get_settings
from travel_booking.core.exceptions import (
    NotFoundError,
    SeatUnavailableError,
    TripBusyError,
    ValidationError,
)
from travel_booking.core.logging import get_logger
from travel_booking.core.metrics import record_version_retry
from travel_booking.models.trip import Seat, Trip
from travel_booking.schemas.booking import SeatSnapshot

logger = get_logger(__name__)
settings = get_settings()

MAX_RETRY_ATTEMPTS = settings.BOOKING_MAX_RETRIES


async def load_trip(db: AsyncSession, trip_id: int) -> Optional[Trip]:
    """Fresh read of a trip and its seats, overwriting any cached state."""
    result = await db.execute(
        select(Trip)
        .options(selectinload(Trip.seats))
        .where(Trip.id == trip_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _compare_and_bump(db: AsyncSession, trip_id: int, read_version: int) -> bool:
    result = await db.execute(
        update(Trip)
        .where(Trip.id == trip_id, Trip.version == read_version)
        .values(version=Trip.version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def lock_trip(db: AsyncSession, trip_id: int, operation: str) -> Trip:
    """
    Read a trip and win its version, retrying on conflicts.

    Raises NotFoundError if the trip does not exist (or vanished between
    attempts) and TripBusyError when every attempt lost the race.
    """
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        trip = await load_trip(db, trip_id)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found")

        read_version = trip.version
        if await _compare_and_bump(db, trip_id, read_version):
            # Keep the in-memory row in step without marking it dirty
            set_committed_value(trip, "version", read_version + 1)
            return trip

        record_version_retry(operation)
        logger.info(
            "trip_write_retry",
            trip_id=trip_id,
            operation=operation,
            attempt=attempt,
            reason="version_conflict",
        )

    logger.warning("trip_write_gave_up", trip_id=trip_id, operation=operation, attempts=MAX_RETRY_ATTEMPTS)
    raise TripBusyError("Trip is being updated by other requests. Please try again.")


def _resolve_seats(trip: Trip, seat_ids: list[int]) -> list[Seat]:
    seat_map = trip.seat_map
    resolved = []
    for seat_id in seat_ids:
        seat = seat_map.get(seat_id)
        if seat is None:
            raise NotFoundError(f"Seat {seat_id} not found in trip {trip.id}")
        resolved.append(seat)
    return resolved


async def claim_seats(
    db: AsyncSession,
    trip_id: int,
    seat_ids: list[int],
    user_id: int,
) -> list[SeatSnapshot]:
    """
    Mark every requested seat booked by `user_id`, or none of them.

    Duplicate ids count once. The whole claim is aborted with NotFoundError
    when the trip or any seat is missing and with SeatUnavailableError (naming
    the seat) when any seat is already booked. Returns the snapshots to store
    on the booking.
    """
    requested = list(dict.fromkeys(seat_ids))
    if not requested:
        raise ValidationError("At least one seat must be selected")

    trip = await lock_trip(db, trip_id, operation="claim")
    seats = _resolve_seats(trip, requested)

    for seat in seats:
        if seat.is_booked:
            logger.warning(
                "seat_claim_rejected",
                trip_id=trip_id,
                seat_id=seat.id,
                seat_label=seat.label,
                user_id=user_id,
            )
            raise SeatUnavailableError(seat.label)

    for seat in seats:
        seat.is_booked = True
        seat.booked_by = user_id
    await db.flush()

    logger.info("seats_claimed", trip_id=trip_id, user_id=user_id, seat_ids=requested)
    return [SeatSnapshot(seat_id=seat.id, seat_label=seat.label) for seat in seats]


async def release_seats(
    db: AsyncSession,
    trip_id: int,
    seat_ids: list[int],
    owner_id: Optional[int] = None,
) -> bool:
    """
    Unbook the given seats. Ids no longer on the trip are ignored.

    With `owner_id`, seats now held by somebody else are left alone, so a
    stale release can never free a seat that was booked again meanwhile.
    Returns False when the trip itself is gone; releasing is then a no-op.
    """
    try:
        trip = await lock_trip(db, trip_id, operation="release")
    except NotFoundError:
        logger.info("seat_release_skipped", trip_id=trip_id, reason="trip_missing")
        return False

    seat_map = trip.seat_map
    released = []
    for seat_id in seat_ids:
        seat = seat_map.get(seat_id)
        if seat is None:
            continue
        if owner_id is not None and seat.booked_by != owner_id:
            logger.warning(
                "seat_release_foreign_holder",
                trip_id=trip_id,
                seat_id=seat_id,
                owner_id=owner_id,
                booked_by=seat.booked_by,
            )
            continue
        seat.is_booked = False
        seat.booked_by = None
        released.append(seat_id)
    await db.flush()

    logger.info("seats_released", trip_id=trip_id, seat_ids=released, ignored=len(seat_ids) - len(released))
    return True


def resize_seats(trip: Trip, new_total: int) -> list[Seat]:
    """
    Grow or shrink a trip's seat sequence towards `new_total`.

    Growth appends unbooked seats labelled after the current count. Shrinking
    drops unbooked seats from the tail and stops at the first booked one, so
    the trip may keep more seats than asked for. `total_seats` always ends up
    equal to the number of seats kept.

    The caller must hold the trip (see lock_trip) or own it as a new object.
    """
    if new_total < 1:
        raise ValidationError("A trip needs at least one seat")

    seats = trip.seats
    if new_total > len(seats):
        for number in range(len(seats) + 1, new_total + 1):
            seats.append(Seat(position=number - 1, label=f"Seat {number}", is_booked=False))
    else:
        while len(seats) > new_total and not seats[-1].is_booked:
            seats.pop()

    if len(seats) != new_total:
        logger.info(
            "trip_shrink_stopped",
            trip_id=trip.id,
            requested=new_total,
            kept=len(seats),
            reason="booked_seat_at_tail",
        )

    trip.total_seats = len(seats)
    return seats
