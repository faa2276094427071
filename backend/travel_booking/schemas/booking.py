"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    trip_id: int
    seat_ids: list[int] = Field(..., min_length=1, max_length=50)
    payment_method: Literal["card", "paypal"] = "card"
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=64)


class SeatSnapshot(BaseModel):
    seat_id: int
    seat_label: str


class TripSummary(BaseModel):
    """What a ticket shows about its trip."""

    id: int
    origin: str
    destination: str
    departure_date: date
    departure_time: str

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: int
    user_id: int
    trip_id: Optional[int]
    trip: Optional[TripSummary] = None  # None once the trip is deleted
    seats: list[SeatSnapshot]
    total_price: Decimal
    payment_method: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingListResponse(BaseModel):
    upcoming: list[BookingResponse]
    past: list[BookingResponse]
