"""
Tests for booking, cancellation and waitlist promotion through BookingEngine.
"""

import pytest

from campus_booking.core.exceptions import (
    AlreadyBookedError,
    BookingNotFoundError,
    EventNotFoundError,
    NotOwnerError,
    NotWaitlistedError,
)
from campus_booking.domain.booking import BookingStatus
from campus_booking.domain.event import EventRef
from campus_booking.services.ledger import BookingLedger

from conftest import OVERBOOKED_EVENT, ROOMY_EVENT, SMALL_EVENT


@pytest.mark.asyncio
async def test_bookings_fill_capacity_then_waitlist(engine):
    """Capacity 2: two confirmed, the third waits at position 1."""
    first = await engine.request_booking(1, SMALL_EVENT)
    second = await engine.request_booking(2, SMALL_EVENT)
    third = await engine.request_booking(3, SMALL_EVENT)

    assert first.status == BookingStatus.CONFIRMED
    assert second.status == BookingStatus.CONFIRMED
    assert third.status == BookingStatus.WAITLISTED
    assert third.waitlist_position == 1
    assert first.waitlist_position is None


@pytest.mark.asyncio
async def test_cancel_promotes_first_waitlisted(engine):
    first = await engine.request_booking(1, SMALL_EVENT)
    await engine.request_booking(2, SMALL_EVENT)
    third = await engine.request_booking(3, SMALL_EVENT)

    cancelled = await engine.cancel_booking(first.id, caller_id=1)

    assert cancelled.status == BookingStatus.CANCELLED
    promoted = await engine.get_booking(third.id, caller_id=3)
    assert promoted.status == BookingStatus.CONFIRMED
    assert promoted.waitlist_position is None

    availability = await engine.event_availability(SMALL_EVENT)
    assert availability.confirmed_count == 2
    assert availability.waitlisted_count == 0


@pytest.mark.asyncio
async def test_overbooking_allows_one_extra_seat(engine):
    """Capacity 1 with overbooking resolves to 2 seats."""
    first = await engine.request_booking(1, OVERBOOKED_EVENT)
    second = await engine.request_booking(2, OVERBOOKED_EVENT)
    third = await engine.request_booking(3, OVERBOOKED_EVENT)

    assert [first.status, second.status] == [BookingStatus.CONFIRMED, BookingStatus.CONFIRMED]
    assert third.status == BookingStatus.WAITLISTED

    availability = await engine.event_availability(OVERBOOKED_EVENT)
    assert availability.effective_capacity == 2
    assert availability.remaining_slots == 0


@pytest.mark.asyncio
async def test_second_booking_for_same_event_rejected(engine):
    await engine.request_booking(1, SMALL_EVENT)
    await engine.request_booking(2, SMALL_EVENT)
    await engine.request_booking(3, SMALL_EVENT)

    # Rejected even though the event is full and the request would only waitlist
    with pytest.raises(AlreadyBookedError):
        await engine.request_booking(3, SMALL_EVENT)


@pytest.mark.asyncio
async def test_unknown_event(engine):
    with pytest.raises(EventNotFoundError):
        await engine.request_booking(1, 404)


@pytest.mark.asyncio
async def test_only_owner_can_cancel(engine):
    booking = await engine.request_booking(1, ROOMY_EVENT)

    with pytest.raises(NotOwnerError):
        await engine.cancel_booking(booking.id, caller_id=2)

    assert (await engine.get_booking(booking.id, caller_id=1)).status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_cancelling_twice_reports_not_found(engine):
    booking = await engine.request_booking(1, ROOMY_EVENT)
    await engine.cancel_booking(booking.id, caller_id=1)

    with pytest.raises(BookingNotFoundError):
        await engine.cancel_booking(booking.id, caller_id=1)
    with pytest.raises(BookingNotFoundError):
        await engine.cancel_booking(12345, caller_id=1)


@pytest.mark.asyncio
async def test_cancelling_waitlisted_renumbers_queue(engine):
    await engine.request_booking(1, SMALL_EVENT)
    await engine.request_booking(2, SMALL_EVENT)
    w1 = await engine.request_booking(3, SMALL_EVENT)
    w2 = await engine.request_booking(4, SMALL_EVENT)
    w3 = await engine.request_booking(5, SMALL_EVENT)
    assert [w1.waitlist_position, w2.waitlist_position, w3.waitlist_position] == [1, 2, 3]

    await engine.cancel_booking(w2.id, caller_id=4)

    assert await engine.waitlist_position(w1.id, caller_id=3) == 1
    assert await engine.waitlist_position(w3.id, caller_id=5) == 2
    # Leaving the queue frees no seat
    availability = await engine.event_availability(SMALL_EVENT)
    assert availability.confirmed_count == 2
    assert availability.waitlisted_count == 2


@pytest.mark.asyncio
async def test_waitlist_position_of_confirmed_booking(engine):
    booking = await engine.request_booking(1, ROOMY_EVENT)

    with pytest.raises(NotWaitlistedError):
        await engine.waitlist_position(booking.id, caller_id=1)


@pytest.mark.asyncio
async def test_promotion_follows_arrival_order(engine, clock):
    first = await engine.request_booking(1, SMALL_EVENT)
    second = await engine.request_booking(2, SMALL_EVENT)
    early = await engine.request_booking(3, SMALL_EVENT)
    clock.advance(seconds=1)
    late = await engine.request_booking(4, SMALL_EVENT)

    await engine.cancel_booking(first.id, caller_id=1)
    assert (await engine.get_booking(early.id, caller_id=3)).status == BookingStatus.CONFIRMED
    assert await engine.waitlist_position(late.id, caller_id=4) == 1

    await engine.cancel_booking(second.id, caller_id=2)
    assert (await engine.get_booking(late.id, caller_id=4)).status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_list_user_bookings_newest_first(engine, clock):
    older = await engine.request_booking(1, SMALL_EVENT)
    clock.advance(minutes=1)
    newer = await engine.request_booking(1, ROOMY_EVENT)
    cancelled = await engine.request_booking(1, OVERBOOKED_EVENT)
    await engine.cancel_booking(cancelled.id, caller_id=1)

    bookings = await engine.list_user_bookings(1)

    assert [b.id for b in bookings] == [newer.id, older.id]


@pytest.mark.asyncio
async def test_cancel_after_event_left_catalog(engine, catalog):
    booking = await engine.request_booking(1, SMALL_EVENT)
    await engine.request_booking(2, SMALL_EVENT)
    waiting = await engine.request_booking(3, SMALL_EVENT)
    catalog.remove(SMALL_EVENT)

    await engine.cancel_booking(booking.id, caller_id=1)

    # Nothing to promote against without a capacity policy
    assert await engine.waitlist_position(waiting.id, caller_id=3) == 1


@pytest.mark.asyncio
async def test_capacity_change_applies_to_next_request(engine, catalog):
    await engine.request_booking(1, SMALL_EVENT)
    await engine.request_booking(2, SMALL_EVENT)
    catalog.put(EventRef(id=SMALL_EVENT, department="Computer Science", base_capacity=2, allow_overbooking=True))

    booking = await engine.request_booking(3, SMALL_EVENT)

    assert booking.status == BookingStatus.CONFIRMED
    with pytest.raises(ValueError):
        catalog.put(EventRef(id=99, base_capacity=0))


@pytest.mark.asyncio
async def test_racing_duplicate_surfaces_as_already_booked(engine, monkeypatch):
    await engine.request_booking(1, ROOMY_EVENT)

    # The pre-check misses the first booking, as when both requests read before either commits
    async def nothing_active(self, user_id, event_id):
        return None

    monkeypatch.setattr(BookingLedger, "find_active", nothing_active)

    with pytest.raises(AlreadyBookedError):
        await engine.request_booking(1, ROOMY_EVENT)
