"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags contention   # Test double-booking of seats
  locust -f locustfile.py --tags throughput   # Test search cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests

Contention needs an existing schedule: SCHEDULE_ID=<id> locust -f locustfile.py ...
"""

import os
import random
import string
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag, events

SCHEDULE_ID = int(os.environ.get("SCHEDULE_ID", "1"))
SEARCH_SOURCE = os.environ.get("SEARCH_SOURCE", "Pune")
SEARCH_DESTINATION = os.environ.get("SEARCH_DESTINATION", "Mumbai")

# Small seat pool so requests overlap constantly
CONTESTED_SEATS = [f"A{i}" for i in range(1, 11)]


def random_email():
    return f"load_{random.randint(10000, 99999)}_{random.choice(string.ascii_lowercase)}@test.com"


def register(client) -> dict:
    resp = client.post("/api/v1/auth/register", json={
        "name": "Load Tester",
        "email": random_email(),
        "password": "test123",
    })
    if resp.status_code == 201:
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}
    return {}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Seat contention target: schedule {SCHEDULE_ID}, seats {CONTESTED_SEATS[0]}-{CONTESTED_SEATS[-1]}")
    print("=" * 60)


class SeatContentionUser(HttpUser):
    """
    TEST 1: Contention - many users, 10 seats, overlapping requests

    Run: SCHEDULE_ID=1 locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After test, verify no seat appears in two active bookings:
      GET /api/v1/schedules/{SCHEDULE_ID} -> booked_seats has no duplicates
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = register(self.client)

    @tag("contention")
    @task
    def book_overlapping_seats(self):
        if not self.headers:
            return
        seats = random.sample(CONTESTED_SEATS, k=random.randint(1, 3))
        with self.client.post(
            "/api/v1/bookings/",
            json={"schedule_id": SCHEDULE_ID, "selected_seats": seats},
            headers=self.headers,
            catch_response=True,
            name="/api/v1/bookings/ [contended]",
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409: seats already held
            elif resp.status_code == 503:
                resp.success()  # retryable contention
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("contention")
    @task
    def verify_no_double_booking(self):
        with self.client.get(
            f"/api/v1/schedules/{SCHEDULE_ID}",
            catch_response=True,
            name="/api/v1/schedules/{id}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Unexpected: {resp.status_code}")
                return
            booked = resp.json()["booked_seats"]
            if len(booked) != len(set(booked)):
                resp.failure(f"Seat sold twice: {sorted(booked)}")
            else:
                resp.success()


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Search cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: Stop Redis, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def search_cached(self):
        travel_date = (datetime.now(timezone.utc) + timedelta(days=random.randint(0, 3))).date()
        self.client.get(
            "/api/v1/search",
            params={"source": SEARCH_SOURCE, "destination": SEARCH_DESTINATION, "date": travel_date.isoformat()},
            name="/api/v1/search [cached]",
        )

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = register(self.client)

    def _expect(self, payload, allowed, headers=None):
        with self.client.post(
            "/api/v1/bookings/",
            json=payload,
            headers=self.headers if headers is None else headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in allowed:
                resp.success()
            else:
                resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_schedule_id(self):
        self._expect({"schedule_id": 999999, "selected_seats": ["A1"]}, [404])

    @tag("edge")
    @task
    def empty_seats(self):
        self._expect({"schedule_id": SCHEDULE_ID, "selected_seats": []}, [400])

    @tag("edge")
    @task
    def duplicate_seats(self):
        self._expect({"schedule_id": SCHEDULE_ID, "selected_seats": ["B1", "B1"]}, [400])

    @tag("edge")
    @task
    def too_many_seats(self):
        self._expect({"schedule_id": SCHEDULE_ID, "selected_seats": [f"Z{i}" for i in range(50)]}, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def missing_auth(self):
        self._expect({"schedule_id": SCHEDULE_ID, "selected_seats": ["A1"]}, [401], headers={})
