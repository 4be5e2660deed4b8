"""
Pytest fixtures: in-memory engine on a controllable clock, and an HTTP
client wired to it.

Each test gets a fresh store and catalog, so nothing leaks between tests.
"""

import os

# Must be set before campus_booking reads its settings
os.environ["REDIS_ENABLED"] = "false"
os.environ["SWEEPER_ENABLED"] = "false"
os.environ["STORAGE_BACKEND"] = "memory"

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from campus_booking.domain.event import EventRef
from campus_booking.infrastructure.memory_store import InMemoryBookingStore, InMemoryEventCatalog
from campus_booking.main import app
from campus_booking.services.booking_service import BookingEngine

CS = "Computer Science"
MATH = "Mathematics"

# Event ids used across the suite
SMALL_EVENT = 1  # capacity 2
OVERBOOKED_EVENT = 2  # capacity 1 + overbooking -> 2
SINGLE_SEAT_EVENT = 3  # capacity 1
ROOMY_EVENT = 4  # capacity 5
MATH_EVENT = 10  # capacity 3, other department


class FakeClock:
    """Clock the tests move by hand; every call returns the same instant until advanced."""

    def __init__(self, start: datetime = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog() -> InMemoryEventCatalog:
    return InMemoryEventCatalog([
        EventRef(id=SMALL_EVENT, title="Algorithms Tutorial", department=CS, base_capacity=2),
        EventRef(id=OVERBOOKED_EVENT, title="Compilers Q&A", department=CS, base_capacity=1, allow_overbooking=True),
        EventRef(id=SINGLE_SEAT_EVENT, title="Office Hours", department=CS, base_capacity=1),
        EventRef(id=ROOMY_EVENT, title="Networks Lab", department=CS, base_capacity=5),
        EventRef(id=MATH_EVENT, title="Topology Seminar", department=MATH, base_capacity=3),
    ])


@pytest.fixture
def store() -> InMemoryBookingStore:
    return InMemoryBookingStore(lock_timeout=1.0)


@pytest.fixture
def engine(store: InMemoryBookingStore, catalog: InMemoryEventCatalog, clock: FakeClock) -> BookingEngine:
    return BookingEngine(store=store, catalog=catalog, clock=clock)


@pytest_asyncio.fixture(scope="function")
async def client(engine: BookingEngine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client talking to the app with the test engine installed."""
    app.state.engine = engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    del app.state.engine


@pytest.fixture
def student_headers() -> Callable[..., dict]:
    """Headers the auth gateway forwards for a verified student."""

    def make(user_id: int, department: str = CS) -> dict:
        return {
            "X-User-Id": str(user_id),
            "X-User-Department": department,
            "X-User-Role": "student",
        }

    return make


@pytest.fixture
def staff_headers() -> dict:
    return {"X-User-Id": "900", "X-User-Department": CS, "X-User-Role": "staff"}
