from travel_booking.models.trip import Trip, Seat
from travel_booking.models.booking import Booking

__all__ = ["Trip", "Seat", "Booking"]
