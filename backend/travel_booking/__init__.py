"""Travel booking service: trips, seats and bookings."""
