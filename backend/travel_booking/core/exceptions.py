"""
Domain errors raised by the services layer.

Services raise these instead of HTTPException so the seat store and booking
ledger can be exercised without a web stack. main.py registers a single
handler that renders them as JSON with the status code declared here.
"""

from fastapi import status


class BookingError(Exception):
    """Base class for every expected failure of a booking operation."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "booking_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class SeatUnavailableError(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "seat_unavailable"

    def __init__(self, seat_label: str):
        super().__init__(f"{seat_label} is already booked")
        self.seat_label = seat_label


class ForbiddenError(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class AlreadyCancelledError(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "already_cancelled"


class ValidationError(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class TripBusyError(BookingError):
    """Optimistic lock retries on a trip were exhausted."""

    status_code = status.HTTP_409_CONFLICT
    code = "trip_busy"


class TripHasActiveBookingsError(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "trip_has_active_bookings"
