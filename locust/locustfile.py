"""
Locust Load Test Suite

Runs against a server started with the demo catalog (SEED_DEMO_EVENTS=true).

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Race for the last seats
  locust -f locustfile.py --tags holds        # Hold, then confirm or abandon
  locust -f locustfile.py --tags throughput   # Cached availability reads
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests
"""

import itertools
import random

from locust import HttpUser, task, between, tag

CS = "Computer Science"

# Demo catalog: Office Hours (5 seats), Algorithms (40), ML Seminar (50 + overbooking)
CONCURRENCY_EVENT_ID = 3
CS_EVENT_IDS = [1, 2, 3, 6]

_user_ids = itertools.count(10_000)


def student_headers(user_id: int) -> dict:
    """Claims the auth gateway would forward for a verified CS student."""
    return {
        "X-User-Id": str(user_id),
        "X-User-Department": CS,
        "X-User-Role": "student",
    }


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 students -> 5 seats

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      GET /api/v1/events/3/availability
    confirmed_count + held_count should be <= 5, everyone else waitlisted
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.user_id = next(_user_ids)
        self.headers = student_headers(self.user_id)

    @tag("concurrency")
    @task
    def book_last_seats(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": CONCURRENCY_EVENT_ID},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Already booked, or retries exhausted under load
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class HoldUser(HttpUser):
    """
    TEST 2: Holds - half the holds are confirmed, half abandoned

    Run: locust -f locustfile.py --tags holds -u 50 -r 10 --run-time 60s
    Start the server with a short HOLD_TTL_MINUTES and SWEEP_INTERVAL_SECONDS
    to watch the sweeper hand abandoned seats to the waitlist.
    """
    wait_time = between(0.5, 2)

    def on_start(self):
        self.headers = student_headers(next(_user_ids))

    @tag("holds")
    @task
    def hold_then_decide(self):
        event_id = random.choice(CS_EVENT_IDS)
        resp = self.client.post(
            "/api/v1/bookings/",
            json={"event_id": event_id, "hold": True},
            headers=self.headers,
        )
        if resp.status_code != 201:
            return
        booking = resp.json()
        if booking["status"] == "hold" and random.random() < 0.5:
            self.client.post(
                f"/api/v1/bookings/{booking['id']}/confirm",
                headers=self.headers,
                name="/api/v1/bookings/{id}/confirm",
            )
        # New identity so the next task is not rejected as a duplicate
        self.headers = student_headers(next(_user_ids))


class ThroughputUser(HttpUser):
    """
    TEST 3: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: Stop Redis, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def availability_cached(self):
        event_id = random.choice(CS_EVENT_IDS)
        self.client.get(
            f"/api/v1/events/{event_id}/availability",
            name="/api/v1/events/{id}/availability",
        )

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 4: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = student_headers(next(_user_ids))

    def _expect(self, resp, *codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event(self):
        with self.client.post("/api/v1/bookings/", json={"event_id": 999999},
                              headers=self.headers, catch_response=True) as resp:
            self._expect(resp, 404)

    @tag("edge")
    @task
    def invalid_event_id(self):
        with self.client.post("/api/v1/bookings/", json={"event_id": -5},
                              headers=self.headers, catch_response=True) as resp:
            self._expect(resp, 422)

    @tag("edge")
    @task
    def wrong_department(self):
        headers = dict(self.headers, **{"X-User-Department": "History"})
        with self.client.post("/api/v1/bookings/", json={"event_id": 1},
                              headers=headers, catch_response=True) as resp:
            self._expect(resp, 403, 409)

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/bookings/", data="not json at all",
                              headers=self.headers, catch_response=True) as resp:
            self._expect(resp, 422)

    @tag("edge")
    @task
    def missing_identity(self):
        with self.client.post("/api/v1/bookings/", json={"event_id": 1},
                              catch_response=True) as resp:
            self._expect(resp, 401)
