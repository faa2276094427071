"""
Booking ledger: who holds which seats on which trip.

Lifecycle:
  confirmed -> cancelled, exactly once. Bookings are never deleted.
  The flip is a conditional UPDATE (... WHERE status = 'confirmed') issued
  while the trip is held, so of two concurrent cancels only one can win; the
  loser rolls back its seat release and gets AlreadyCancelledError.

Atomicity:
  Claiming seats and inserting the booking row happen in one database
  transaction, so a crash between the two leaves nothing behind: either the
  seats are held by a committed booking or they are still free. Clients may
  also send an `idempotency_key`; replaying the same key returns the booking
  created the first time instead of claiming again.

Upcoming vs past:
  list_for_user takes `now` as an argument. A booking is upcoming while its
  trip has not departed yet (departure date + time >= now) and it is still
  confirmed; everything else, including cancelled bookings for future trips,
  is past. Departure times are wall-clock times in the timezone of `now`.
"""

from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from travel_booking.core.exceptions import (
    AlreadyCancelledError,
    BookingError,
    ForbiddenError,
    NotFoundError,
)
from travel_booking.core.logging import get_logger
from travel_booking.core.metrics import booking_cancellations
from travel_booking.db.base import utcnow
from travel_booking.models.booking import Booking, STATUS_CANCELLED, STATUS_CONFIRMED
from travel_booking.models.trip import Trip
from travel_booking.schemas.booking import BookingCreate
from travel_booking.schemas.user import CurrentUser
from travel_booking.services.seat_store import claim_seats, release_seats

logger = get_logger(__name__)


@dataclass
class BookingPartition:
    upcoming: list[Booking] = field(default_factory=list)
    past: list[Booking] = field(default_factory=list)


async def _find_by_idempotency_key(db: AsyncSession, user_id: int, key: str) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.trip))
        .where(Booking.user_id == user_id, Booking.idempotency_key == key)
    )
    return result.scalar_one_or_none()


async def _get_booking_or_404(db: AsyncSession, booking_id: int) -> Booking:
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.trip))
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


async def create_booking(db: AsyncSession, user_id: int, booking_data: BookingCreate) -> Booking:
    """
    Claim seats and record the booking in one commit.
    NotFoundError / SeatUnavailableError / ValidationError leave no trace.
    """
    key = booking_data.idempotency_key
    if key:
        existing = await _find_by_idempotency_key(db, user_id, key)
        if existing:
            logger.info("booking_replayed", booking_id=existing.id, user_id=user_id)
            return existing

    try:
        snapshots = await claim_seats(db, booking_data.trip_id, booking_data.seat_ids, user_id)
    except BookingError:
        await db.rollback()
        raise

    # Already in the identity map after the claim
    trip = await db.get(Trip, booking_data.trip_id)

    booking = Booking(
        user_id=user_id,
        trip_id=booking_data.trip_id,
        seats=[snapshot.model_dump() for snapshot in snapshots],
        total_price=trip.price * len(snapshots),
        payment_method=booking_data.payment_method,
        status=STATUS_CONFIRMED,
        idempotency_key=key,
    )
    db.add(booking)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        existing = await _find_by_idempotency_key(db, user_id, key) if key else None
        if existing is None:
            logger.error(
                "booking_insert_failed",
                user_id=user_id,
                trip_id=booking_data.trip_id,
                seat_ids=[snapshot.seat_id for snapshot in snapshots],
                idempotency_key=key,
                error=str(e.orig),
            )
            raise
        # A concurrent request with the same key won; its seats are ours to return
        logger.info("booking_replayed", booking_id=existing.id, user_id=user_id)
        return existing

    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=user_id,
        trip_id=booking.trip_id,
        seats=len(snapshots),
        total_price=str(booking.total_price),
    )
    return await _get_booking_or_404(db, booking.id)


def _check_access(booking: Booking, user: CurrentUser) -> None:
    if booking.user_id != user.id and not user.is_admin:
        logger.warning("booking_access_denied", booking_id=booking.id, user_id=user.id)
        raise ForbiddenError("Not authorized to access this booking")


async def get_booking(db: AsyncSession, booking_id: int, user: CurrentUser) -> Booking:
    """Owner or administrator only."""
    booking = await _get_booking_or_404(db, booking_id)
    _check_access(booking, user)
    return booking


async def _mark_cancelled(db: AsyncSession, booking_id: int) -> bool:
    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == STATUS_CONFIRMED)
        .values(status=STATUS_CANCELLED, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def cancel_booking(db: AsyncSession, booking_id: int, user: CurrentUser) -> Booking:
    """
    Cancel a booking and release its seats.
    If the trip no longer exists the release is skipped and the status still flips.
    """
    booking = await _get_booking_or_404(db, booking_id)
    _check_access(booking, user)

    if booking.status == STATUS_CANCELLED:
        raise AlreadyCancelledError("Booking is already cancelled")

    owner_id = booking.user_id
    trip_id = booking.trip_id
    seat_ids = booking.seat_ids

    try:
        released = False
        if trip_id is not None:
            released = await release_seats(db, trip_id, seat_ids, owner_id=owner_id)

        # Status may have changed while we waited for the trip
        if not await _mark_cancelled(db, booking_id):
            logger.warning("booking_cancel_lost_race", booking_id=booking_id, cancelled_by=user.id)
            raise AlreadyCancelledError("Booking is already cancelled")
    except BookingError:
        await db.rollback()
        raise

    await db.commit()
    booking_cancellations.inc()

    logger.info(
        "booking_cancelled",
        booking_id=booking_id,
        cancelled_by=user.id,
        trip_id=trip_id,
        seats_released=len(seat_ids) if released else 0,
    )
    return await _get_booking_or_404(db, booking_id)


def _departs_at(trip: Trip, now: datetime) -> datetime:
    return datetime.combine(trip.departure_date, time.fromisoformat(trip.departure_time), tzinfo=now.tzinfo)


async def list_for_user(db: AsyncSession, user_id: int, now: datetime) -> BookingPartition:
    """Split a user's bookings into upcoming and past, newest first."""
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.trip))
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .execution_options(populate_existing=True)
    )

    partition = BookingPartition()
    for booking in result.scalars().all():
        trip = booking.trip
        if trip is not None and booking.status == STATUS_CONFIRMED and _departs_at(trip, now) >= now:
            partition.upcoming.append(booking)
        else:
            partition.past.append(booking)
    return partition
