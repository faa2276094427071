"""
Trip model with its embedded seat inventory.

Key design decisions:
- Seats are owned by their trip (delete-orphan cascade) and ordered by `position`
- A seat's integer primary key is the only identifier clients use to pick it
- `version` column enables optimistic locking: every seat mutation bumps it,
  so a claim that read a stale seat map loses the compare-and-set and retries
- Index on (departure_date, departure_time) serves the search ordering
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship

from travel_booking.db.base import Base, TimestampMixin


class Trip(Base, TimestampMixin):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    origin = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    departure_date = Column(Date, nullable=False)
    departure_time = Column(String(5), nullable=False)  # HH:MM
    price = Column(Numeric(10, 2), nullable=False)
    total_seats = Column(Integer, nullable=False)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    seats = relationship(
        "Seat",
        back_populates="trip",
        order_by="Seat.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_trip_price_non_negative"),
        CheckConstraint("total_seats > 0", name="check_trip_total_seats_positive"),
        Index("ix_trips_departure", "departure_date", "departure_time"),
    )

    @property
    def seat_map(self) -> dict[int, "Seat"]:
        return {seat.id: seat for seat in self.seats}

    @property
    def available_seats(self) -> int:
        return sum(1 for seat in self.seats if not seat.is_booked)

    def __repr__(self) -> str:
        return (
            f"<Trip(id={self.id}, {self.origin}->{self.destination}, "
            f"date={self.departure_date}, available={self.available_seats}/{self.total_seats})>"
        )


class Seat(Base):
    __tablename__ = "seats"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    label = Column(String(50), nullable=False)
    is_booked = Column(Boolean, nullable=False, default=False)
    booked_by = Column(Integer, nullable=True)

    trip = relationship("Trip", back_populates="seats")

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, trip={self.trip_id}, label={self.label}, booked={self.is_booked})>"
