"""
Pydantic schemas for trip-related request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class TripCreate(BaseModel):
    origin: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    departure_date: date
    departure_time: str = Field(..., pattern=TIME_PATTERN)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    total_seats: int = Field(..., gt=0)


class TripUpdate(BaseModel):
    origin: Optional[str] = Field(None, min_length=1, max_length=255)
    destination: Optional[str] = Field(None, min_length=1, max_length=255)
    departure_date: Optional[date] = None
    departure_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    total_seats: Optional[int] = Field(None, gt=0)


class SeatResponse(BaseModel):
    id: int
    label: str
    is_booked: bool
    booked_by: Optional[int]

    model_config = {"from_attributes": True}


class TripResponse(BaseModel):
    id: int
    origin: str
    destination: str
    departure_date: date
    departure_time: str
    price: Decimal
    total_seats: int
    available_seats: int
    seats: list[SeatResponse]
    created_at: datetime

    model_config = {"from_attributes": True}


class TripListResponse(BaseModel):
    trips: list[TripResponse]
    total: int
    cached: bool = False


class TripDeleteResponse(BaseModel):
    message: str
    trip_id: int
