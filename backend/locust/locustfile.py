"""
Locust Load Test Suite

Run from backend/ so the travel_booking package is importable (tokens are
minted locally with the API's signing key; there is no login endpoint):

  locust -f locust/locustfile.py --tags concurrency  # Test double booking
  locust -f locust/locustfile.py --tags throughput   # Test cache
  locust -f locust/locustfile.py --tags edge         # Test bad input
  locust -f locust/locustfile.py                     # All tests
"""

import random
import uuid
from datetime import date, timedelta

from locust import HttpUser, task, between, tag, events

from travel_booking.core.security import create_access_token
from travel_booking.schemas.user import ROLE_ADMINISTRATOR, ROLE_CUSTOMER

# Shared state
TRIP_IDS = []
RACE_TRIP = {"id": None, "seat_ids": []}


def customer_headers() -> dict:
    user_id = random.randint(1000, 999999)
    token = create_access_token({"sub": str(user_id), "role": ROLE_CUSTOMER})
    return {"Authorization": f"Bearer {token}"}


def admin_headers() -> dict:
    token = create_access_token({"sub": "1", "role": ROLE_ADMINISTRATOR})
    return {"Authorization": f"Bearer {token}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Setup: create a small trip every concurrency user fights over."""
    print("\n" + "=" * 60)
    print("SETUP: Creating concurrency test trip...")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> 10 seats, each user picks random seats

    Run: locust -f locust/locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify no seat is held twice:
      SELECT COUNT(*) FROM seats WHERE trip_id = X AND is_booked;
    must equal the number of seat snapshots in confirmed bookings for X.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = customer_headers()

        if not RACE_TRIP["id"]:
            resp = self.client.post(
                "/api/v1/trips/",
                json={
                    "origin": "Load Test City",
                    "destination": "Race Town",
                    "departure_date": (date.today() + timedelta(days=30)).isoformat(),
                    "departure_time": "12:00",
                    "price": "10.00",
                    "total_seats": 10,
                },
                headers=admin_headers(),
            )
            if resp.status_code == 201:
                data = resp.json()
                RACE_TRIP["id"] = data["id"]
                RACE_TRIP["seat_ids"] = [s["id"] for s in data["seats"]]
                print(f"\nCreated trip {data['id']} with 10 seats\n")

    @tag("concurrency")
    @task
    def book_contended_seats(self):
        """All users fight for the same 10 seats."""
        if not RACE_TRIP["id"]:
            return

        seat_ids = random.sample(RACE_TRIP["seat_ids"], k=random.randint(1, 2))
        with self.client.post(
            "/api/v1/bookings/",
            json={"trip_id": RACE_TRIP["id"], "seat_ids": seat_ids},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: seat taken or trip busy
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locust/locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def search_trips_cached(self):
        """Hammer the cached search endpoint."""
        origin = random.choice(["New York", "Chicago", "Atlanta", ""])
        self.client.get(f"/api/v1/trips/?origin={origin}", name="/api/v1/trips/ [cached]")

    @tag("throughput", "read")
    @task(3)
    def get_trip_detail(self):
        """Read individual trips with their seat maps."""
        if TRIP_IDS:
            self.client.get(f"/api/v1/trips/{random.choice(TRIP_IDS)}", name="/api/v1/trips/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locust/locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = customer_headers()

    def _expect(self, resp, allowed):
        if resp.status_code in allowed:
            resp.success()
        else:
            resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_trip_id(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"trip_id": 999999, "seat_ids": [1]},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def empty_seat_list(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"trip_id": 1, "seat_ids": []},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def unknown_payment_method(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"trip_id": 1, "seat_ids": [1], "payment_method": "cash"},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"trip_id": 1, "seat_ids": [1]},
            catch_response=True,
        ) as resp:
            self._expect(resp, [401])

    @tag("edge")
    @task
    def customer_creates_trip(self):
        with self.client.post(
            "/api/v1/trips/",
            json={
                "origin": "A",
                "destination": "B",
                "departure_date": date.today().isoformat(),
                "departure_time": "08:00",
                "price": "1",
                "total_seats": 1,
            },
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [403])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locust/locustfile.py -u 200 -r 20 --run-time 120s

    Mostly searching, some seat picking and booking, occasional cancellation.
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = customer_headers()
        self.booking_ids = []

    @task(50)
    def browse_trips(self):
        resp = self.client.get("/api/v1/trips/")
        if resp.status_code == 200:
            for trip in resp.json().get("trips", []):
                if trip["id"] not in TRIP_IDS:
                    TRIP_IDS.append(trip["id"])

    @task(10)
    def book_free_seat(self):
        """View a trip, pick a free seat, book it."""
        if not TRIP_IDS:
            return
        resp = self.client.get(f"/api/v1/trips/{random.choice(TRIP_IDS)}", name="/api/v1/trips/{id}")
        if resp.status_code != 200:
            return
        trip = resp.json()
        free = [s["id"] for s in trip["seats"] if not s["is_booked"]]
        if not free:
            return

        with self.client.post(
            "/api/v1/bookings/",
            json={
                "trip_id": trip["id"],
                "seat_ids": random.sample(free, k=min(len(free), random.randint(1, 3))),
                "payment_method": random.choice(["card", "paypal"]),
                "idempotency_key": uuid.uuid4().hex,
            },
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                self.booking_ids.append(resp.json()["id"])
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # someone got there first
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @task(5)
    def my_bookings(self):
        self.client.get("/api/v1/bookings/my-bookings", headers=self.headers)

    @task(2)
    def cancel_booking(self):
        if self.booking_ids:
            booking_id = self.booking_ids.pop()
            self.client.put(
                f"/api/v1/bookings/{booking_id}/cancel",
                headers=self.headers,
                name="/api/v1/bookings/{id}/cancel",
            )
