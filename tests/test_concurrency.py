"""
Concurrency tests: parallel intents against the same event must never
push occupancy past effective capacity.
"""

import asyncio

import pytest

from campus_booking.core.exceptions import AlreadyBookedError
from campus_booking.domain.booking import BookingStatus

from conftest import OVERBOOKED_EVENT, ROOMY_EVENT, SINGLE_SEAT_EVENT


@pytest.mark.asyncio
async def test_parallel_bookings_for_last_seat(engine):
    """With one seat left, exactly one of many parallel requests gets it."""
    for user_id in range(1, 5):
        await engine.request_booking(user_id, ROOMY_EVENT)

    results = await asyncio.gather(*[engine.request_booking(user_id, ROOMY_EVENT) for user_id in range(100, 130)])

    confirmed = [b for b in results if b.status == BookingStatus.CONFIRMED]
    waitlisted = [b for b in results if b.status == BookingStatus.WAITLISTED]
    assert len(confirmed) == 1
    assert sorted(b.waitlist_position for b in waitlisted) == list(range(1, 30))

    availability = await engine.event_availability(ROOMY_EVENT)
    assert availability.confirmed_count == 5
    assert availability.remaining_slots == 0


@pytest.mark.asyncio
async def test_parallel_duplicate_requests_from_one_user(engine):
    results = await asyncio.gather(
        *[engine.request_booking(7, OVERBOOKED_EVENT) for _ in range(10)],
        return_exceptions=True,
    )

    bookings = [r for r in results if not isinstance(r, Exception)]
    assert len(bookings) == 1
    assert all(isinstance(r, AlreadyBookedError) for r in results if isinstance(r, Exception))


@pytest.mark.asyncio
async def test_parallel_cancels_and_bookings(engine):
    holders = [await engine.request_booking(user_id, SINGLE_SEAT_EVENT) for user_id in range(1, 6)]

    await asyncio.gather(
        *[engine.cancel_booking(b.id, caller_id=b.user_id) for b in holders[:3]],
        *[engine.request_booking(user_id, SINGLE_SEAT_EVENT) for user_id in range(50, 55)],
    )

    availability = await engine.event_availability(SINGLE_SEAT_EVENT)
    assert availability.confirmed_count == 1
    assert availability.waitlisted_count == 6

    # Positions stay dense after interleaved changes
    queue = [b for b in await _active(engine, SINGLE_SEAT_EVENT) if b.status == BookingStatus.WAITLISTED]
    assert sorted(b.waitlist_position for b in queue) == list(range(1, 7))


async def _active(engine, event_id):
    async with engine.store.transaction(event_id) as tx:
        return await tx.list_for_event(event_id)
