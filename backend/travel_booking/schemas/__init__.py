from travel_booking.schemas.user import CurrentUser
from travel_booking.schemas.trip import (
    TripCreate, TripUpdate, SeatResponse, TripResponse, TripListResponse, TripDeleteResponse,
)
from travel_booking.schemas.booking import (
    BookingCreate, SeatSnapshot, TripSummary, BookingResponse, BookingListResponse,
)

__all__ = [
    "CurrentUser",
    "TripCreate", "TripUpdate", "SeatResponse", "TripResponse", "TripListResponse", "TripDeleteResponse",
    "BookingCreate", "SeatSnapshot", "TripSummary", "BookingResponse", "BookingListResponse",
]
