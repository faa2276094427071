"""
Booking model representing a user's claim over seats on one trip.

Key design decisions:
- `seats` is a JSON snapshot of {seat_id, seat_label} taken at booking time,
  so a booking stays displayable after the trip is resized or deleted
- `trip_id` is nulled (not cascaded) when a trip is deleted
- Status field allows cancellation without deleting records
- (user_id, idempotency_key) is unique so a retried booking intent cannot
  claim seats twice
"""

from sqlalchemy import JSON, CheckConstraint, Column, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from travel_booking.db.base import Base, TimestampMixin

STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="SET NULL"), nullable=True, index=True)
    seats = Column(JSON, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(20), nullable=False, default="card")
    status = Column(String(20), nullable=False, default=STATUS_CONFIRMED)
    idempotency_key = Column(String(64), nullable=True)

    trip = relationship("Trip", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_booking_user_idempotency_key"),
        CheckConstraint("total_price >= 0", name="check_booking_total_price_non_negative"),
        CheckConstraint("status IN ('confirmed', 'cancelled')", name="check_booking_status"),
        Index("ix_bookings_user_created", "user_id", "created_at"),
    )

    @property
    def seat_ids(self) -> list[int]:
        return [snapshot["seat_id"] for snapshot in self.seats]

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, trip={self.trip_id}, status={self.status})>"
