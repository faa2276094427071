"""
Seed sample trips and print tokens for a demo customer and administrator.

    python -m travel_booking.seed

Trips are dated relative to today so the "upcoming" list is never empty.
Existing trips without bookings are cleared first.
"""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import delete, select

from travel_booking.core.logging import get_logger, setup_logging
from travel_booking.core.security import create_access_token
from travel_booking.db.session import AsyncSessionLocal, engine
from travel_booking.models.booking import Booking
from travel_booking.models.trip import Trip
from travel_booking.schemas.trip import TripCreate
from travel_booking.schemas.user import ROLE_ADMINISTRATOR, ROLE_CUSTOMER
from travel_booking.services.trip_service import create_trip

logger = get_logger(__name__)

DEMO_CUSTOMER_ID = 1
DEMO_ADMIN_ID = 2

SAMPLE_TRIPS = [
    ("New York", "Boston", 3, "09:00", "48"),
    ("Chicago", "Los Angeles", 6, "10:30", "156"),
    ("Atlanta", "Miami", 8, "14:00", "129"),
    ("Boston", "New York", 3, "15:30", "89"),
    ("Los Angeles", "San Francisco", 10, "08:00", "75"),
    ("Miami", "Orlando", 13, "11:00", "45"),
]
SEATS_PER_TRIP = 36


async def seed_trips() -> list[Trip]:
    today = date.today()
    trips = []

    async with AsyncSessionLocal() as db:
        booked_trip_ids = select(Booking.trip_id).where(Booking.trip_id.is_not(None))
        await db.execute(delete(Trip).where(Trip.id.not_in(booked_trip_ids)))
        await db.commit()
        logger.info("seed_cleared_trips")

        for origin, destination, days_ahead, departure_time, price in SAMPLE_TRIPS:
            trip = await create_trip(
                db,
                TripCreate(
                    origin=origin,
                    destination=destination,
                    departure_date=today + timedelta(days=days_ahead),
                    departure_time=departure_time,
                    price=Decimal(price),
                    total_seats=SEATS_PER_TRIP,
                ),
            )
            trips.append(trip)

    return trips


async def main() -> None:
    setup_logging()
    try:
        trips = await seed_trips()
    finally:
        await engine.dispose()

    logger.info("seed_completed", trips=len(trips), seats_per_trip=SEATS_PER_TRIP)
    print(f"Created {len(trips)} trips with {SEATS_PER_TRIP} seats each")
    print(f"Customer token: {create_access_token({'sub': str(DEMO_CUSTOMER_ID), 'role': ROLE_CUSTOMER})}")
    print(f"Admin token:    {create_access_token({'sub': str(DEMO_ADMIN_ID), 'role': ROLE_ADMINISTRATOR})}")


if __name__ == "__main__":
    asyncio.run(main())
