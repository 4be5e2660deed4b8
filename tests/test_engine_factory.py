"""
Tests for building the engine from settings.
"""

import pytest

from campus_booking.core.config import Settings
from campus_booking.domain.booking import BookingStatus
from campus_booking.infrastructure.memory_store import InMemoryBookingStore
from campus_booking.services.engine_factory import DEMO_EVENTS, build_engine


@pytest.mark.asyncio
async def test_memory_backend_with_demo_catalog():
    engine = build_engine(Settings(STORAGE_BACKEND="memory", HOLD_TTL_MINUTES=5))

    assert isinstance(engine.store, InMemoryBookingStore)
    assert engine.hold_ttl.total_seconds() == 300
    booking = await engine.request_booking(1, DEMO_EVENTS[0].id)
    assert booking.status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_memory_backend_without_seed():
    engine = build_engine(Settings(STORAGE_BACKEND="memory", SEED_DEMO_EVENTS=False))

    assert await engine.catalog.get_event(DEMO_EVENTS[0].id) is None


def test_unknown_backend():
    with pytest.raises(ValueError):
        build_engine(Settings(STORAGE_BACKEND="cassandra"))
