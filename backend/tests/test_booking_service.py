"""
Tests for the booking ledger: create/cancel lifecycle, access rules,
upcoming/past partitioning and the seats <-> bookings invariant.

A failed operation rolls the session back, which expires every loaded ORM
object, so these tests hold on to plain ids rather than instances.
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

import pytest
from structlog.testing import capture_logs
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from travel_booking.core.exceptions import (
    AlreadyCancelledError,
    ForbiddenError,
    NotFoundError,
    SeatUnavailableError,
    TripHasActiveBookingsError,
)
from travel_booking.models.booking import Booking, STATUS_CANCELLED, STATUS_CONFIRMED
from travel_booking.schemas.booking import BookingCreate
from travel_booking.services.booking_service import (
    cancel_booking,
    create_booking,
    get_booking,
    list_for_user,
)
from travel_booking.services.seat_store import load_trip
from travel_booking.services.trip_service import delete_trip


def _ids(trip) -> tuple[int, list[int]]:
    return trip.id, [seat.id for seat in trip.seats]


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _assert_seats_match_bookings(db: AsyncSession, trip_id: int) -> None:
    trip = await load_trip(db, trip_id)
    result = await db.execute(
        select(Booking).where(Booking.trip_id == trip_id, Booking.status == STATUS_CONFIRMED)
    )
    held = [snapshot["seat_id"] for booking in result.scalars() for snapshot in booking.seats]
    booked = [seat.id for seat in trip.seats if seat.is_booked]
    assert sorted(held) == sorted(booked)


@pytest.mark.asyncio
async def test_booking_lifecycle_scenario(db_session: AsyncSession, trip, customer, other_customer):
    """Two seats at 50: A books S1, B is refused S1, B books S2, A cancels."""
    trip_id, (s1, s2) = _ids(trip)

    b1 = await create_booking(db_session, customer.id, BookingCreate(trip_id=trip_id, seat_ids=[s1]))
    b1_id = b1.id
    assert b1.status == STATUS_CONFIRMED
    assert b1.total_price == Decimal("50")

    with pytest.raises(SeatUnavailableError) as exc_info:
        await create_booking(db_session, other_customer.id, BookingCreate(trip_id=trip_id, seat_ids=[s1]))
    assert exc_info.value.seat_label == "Seat 1"

    b2 = await create_booking(db_session, other_customer.id, BookingCreate(trip_id=trip_id, seat_ids=[s2]))
    assert b2.total_price == Decimal("50")
    await _assert_seats_match_bookings(db_session, trip_id)

    cancelled = await cancel_booking(db_session, b1_id, customer)
    assert cancelled.status == STATUS_CANCELLED

    fresh = await load_trip(db_session, trip_id)
    assert fresh.seat_map[s1].is_booked is False
    assert fresh.seat_map[s2].is_booked is True
    await _assert_seats_match_bookings(db_session, trip_id)

    partition = await list_for_user(db_session, customer.id, now=_now())
    assert [b.id for b in partition.past] == [b1_id]
    assert partition.upcoming == []


@pytest.mark.asyncio
async def test_total_price_and_snapshot(db_session: AsyncSession, trip_factory, customer):
    trip = await trip_factory(total_seats=5, price="12.50")
    trip_id, seats = _ids(trip)

    booking = await create_booking(
        db_session,
        customer.id,
        BookingCreate(trip_id=trip_id, seat_ids=[seats[3], seats[1], seats[3]], payment_method="paypal"),
    )

    assert booking.total_price == Decimal("25.00")
    assert booking.payment_method == "paypal"
    assert booking.seats == [
        {"seat_id": seats[3], "seat_label": "Seat 4"},
        {"seat_id": seats[1], "seat_label": "Seat 2"},
    ]


@pytest.mark.asyncio
async def test_failed_claim_writes_no_booking(db_session: AsyncSession, trip, customer):
    trip_id, seats = _ids(trip)

    with pytest.raises(NotFoundError):
        await create_booking(db_session, customer.id, BookingCreate(trip_id=trip_id, seat_ids=[seats[0], 987654]))

    result = await db_session.execute(select(Booking))
    assert result.scalars().all() == []
    fresh = await load_trip(db_session, trip_id)
    assert fresh.available_seats == 2


@pytest.mark.asyncio
async def test_booking_unknown_trip(db_session: AsyncSession, customer):
    with pytest.raises(NotFoundError):
        await create_booking(db_session, customer.id, BookingCreate(trip_id=424242, seat_ids=[1]))


@pytest.mark.asyncio
async def test_idempotency_key_replays_existing_booking(db_session: AsyncSession, trip, customer):
    trip_id, seats = _ids(trip)
    request = BookingCreate(trip_id=trip_id, seat_ids=[seats[0]], idempotency_key="intent-1")

    first = await create_booking(db_session, customer.id, request)
    again = await create_booking(db_session, customer.id, request)

    assert again.id == first.id
    result = await db_session.execute(select(Booking))
    assert len(result.scalars().all()) == 1


@pytest.mark.asyncio
async def test_cancel_rules(db_session: AsyncSession, trip, customer, other_customer, admin):
    trip_id, seats = _ids(trip)
    booking = await create_booking(db_session, customer.id, BookingCreate(trip_id=trip_id, seat_ids=[seats[0]]))
    booking_id = booking.id

    with pytest.raises(ForbiddenError):
        await cancel_booking(db_session, booking_id, other_customer)

    with pytest.raises(NotFoundError):
        await cancel_booking(db_session, 424242, customer)

    cancelled = await cancel_booking(db_session, booking_id, admin)
    assert cancelled.status == STATUS_CANCELLED


@pytest.mark.asyncio
async def test_cancel_twice_leaves_state_unchanged(db_session: AsyncSession, trip, customer, other_customer):
    trip_id, seats = _ids(trip)
    booking = await create_booking(db_session, customer.id, BookingCreate(trip_id=trip_id, seat_ids=[seats[0]]))
    booking_id = booking.id
    await cancel_booking(db_session, booking_id, customer)

    # someone else takes the released seat
    await create_booking(db_session, other_customer.id, BookingCreate(trip_id=trip_id, seat_ids=[seats[0]]))

    with pytest.raises(AlreadyCancelledError):
        await cancel_booking(db_session, booking_id, customer)

    fresh = await load_trip(db_session, trip_id)
    assert fresh.seat_map[seats[0]].is_booked is True
    assert fresh.seat_map[seats[0]].booked_by == other_customer.id
    await _assert_seats_match_bookings(db_session, trip_id)


@pytest.mark.asyncio
async def test_get_booking_access(db_session: AsyncSession, trip, customer, other_customer, admin):
    trip_id, seats = _ids(trip)
    booking = await create_booking(db_session, customer.id, BookingCreate(trip_id=trip_id, seat_ids=[seats[1]]))
    booking_id = booking.id

    assert (await get_booking(db_session, booking_id, customer)).id == booking_id
    assert (await get_booking(db_session, booking_id, admin)).id == booking_id
    with pytest.raises(ForbiddenError):
        await get_booking(db_session, booking_id, other_customer)
    with pytest.raises(NotFoundError):
        await get_booking(db_session, 424242, admin)


@pytest.mark.asyncio
async def test_list_for_user_partitions_by_departure(db_session: AsyncSession, trip, past_trip, customer):
    trip_id, seats = _ids(trip)
    past_trip_id, past_seats = _ids(past_trip)

    upcoming = await create_booking(db_session, customer.id, BookingCreate(trip_id=trip_id, seat_ids=[seats[0]]))
    past = await create_booking(
        db_session, customer.id, BookingCreate(trip_id=past_trip_id, seat_ids=[past_seats[0]])
    )

    partition = await list_for_user(db_session, customer.id, now=_now())

    assert [b.id for b in partition.upcoming] == [upcoming.id]
    assert [b.id for b in partition.past] == [past.id]


@pytest.mark.asyncio
async def test_list_for_user_uses_given_now(db_session: AsyncSession, trip, customer):
    trip_id, seats = _ids(trip)
    booking = await create_booking(db_session, customer.id, BookingCreate(trip_id=trip_id, seat_ids=[seats[0]]))

    partition = await list_for_user(db_session, customer.id, now=_now() + timedelta(days=30))

    assert partition.upcoming == []
    assert [b.id for b in partition.past] == [booking.id]


@pytest.mark.asyncio
async def test_list_for_user_compares_departure_time(db_session: AsyncSession, trip_factory, customer):
    """On the day of travel, a morning trip has left by noon; an evening one has not."""
    morning = await trip_factory(days_ahead=0, departure_time="08:00")
    evening = await trip_factory(days_ahead=0, departure_time="18:30", origin="Boston", destination="Albany")
    morning_id, morning_seats = _ids(morning)
    evening_id, evening_seats = _ids(evening)

    departed = await create_booking(
        db_session, customer.id, BookingCreate(trip_id=morning_id, seat_ids=[morning_seats[0]])
    )
    departed_id = departed.id
    later = await create_booking(
        db_session, customer.id, BookingCreate(trip_id=evening_id, seat_ids=[evening_seats[0]])
    )
    later_id = later.id

    noon = datetime.combine(date.today(), time(12, 0), tzinfo=timezone.utc)
    partition = await list_for_user(db_session, customer.id, now=noon)
    assert [b.id for b in partition.upcoming] == [later_id]
    assert [b.id for b in partition.past] == [departed_id]

    # departing exactly now still counts as upcoming
    boarding = datetime.combine(date.today(), time(18, 30), tzinfo=timezone.utc)
    partition = await list_for_user(db_session, customer.id, now=boarding)
    assert [b.id for b in partition.upcoming] == [later_id]


@pytest.mark.asyncio
async def test_unexpected_integrity_error_is_logged_and_rolled_back(
    db_session: AsyncSession, trip, customer, monkeypatch
):
    trip_id, seats = _ids(trip)

    async def failing_commit():
        raise IntegrityError("INSERT INTO bookings", {}, Exception("constraint failed"))

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with capture_logs() as logs:
        with pytest.raises(IntegrityError):
            await create_booking(db_session, customer.id, BookingCreate(trip_id=trip_id, seat_ids=[seats[0]]))

    failures = [entry for entry in logs if entry["event"] == "booking_insert_failed"]
    assert len(failures) == 1
    assert failures[0]["trip_id"] == trip_id
    assert failures[0]["seat_ids"] == [seats[0]]
    assert failures[0]["log_level"] == "error"

    monkeypatch.undo()
    fresh = await load_trip(db_session, trip_id)
    assert fresh.available_seats == 2
    result = await db_session.execute(select(Booking))
    assert result.scalars().all() == []


@pytest.mark.asyncio
async def test_list_for_user_newest_first(db_session: AsyncSession, trip_factory, customer, other_customer):
    trip = await trip_factory(total_seats=4)
    trip_id, seats = _ids(trip)

    ids = []
    for seat_id in seats[:3]:
        booking = await create_booking(db_session, customer.id, BookingCreate(trip_id=trip_id, seat_ids=[seat_id]))
        ids.append(booking.id)
    await create_booking(db_session, other_customer.id, BookingCreate(trip_id=trip_id, seat_ids=[seats[3]]))

    partition = await list_for_user(db_session, customer.id, now=_now())
    assert [b.id for b in partition.upcoming] == list(reversed(ids))
    assert partition.past == []


@pytest.mark.asyncio
async def test_delete_trip_policy(db_session: AsyncSession, trip, customer, admin):
    trip_id, seats = _ids(trip)
    booking = await create_booking(db_session, customer.id, BookingCreate(trip_id=trip_id, seat_ids=[seats[0]]))
    booking_id = booking.id

    with pytest.raises(TripHasActiveBookingsError):
        await delete_trip(db_session, trip_id)

    await cancel_booking(db_session, booking_id, customer)
    await delete_trip(db_session, trip_id)

    assert await load_trip(db_session, trip_id) is None
    kept = await get_booking(db_session, booking_id, admin)
    assert kept.trip_id is None
    assert kept.seats[0]["seat_label"] == "Seat 1"

    partition = await list_for_user(db_session, customer.id, now=_now())
    assert [b.id for b in partition.past] == [booking_id]

    # cancelling history of a deleted trip is still rejected cleanly
    with pytest.raises(AlreadyCancelledError):
        await cancel_booking(db_session, booking_id, customer)
