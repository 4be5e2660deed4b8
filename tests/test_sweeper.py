"""
Tests for the expiry sweeper: batch reclamation and the background loop.
"""

import asyncio

import pytest

from campus_booking.core.exceptions import BookingNotFoundError
from campus_booking.domain.booking import BookingStatus
from campus_booking.services import expiry_sweeper
from campus_booking.services.expiry_sweeper import ExpirySweeper

from conftest import ROOMY_EVENT, SINGLE_SEAT_EVENT, SMALL_EVENT


@pytest.mark.asyncio
async def test_sweep_releases_unconfirmed_hold(engine, clock):
    """A hold left alone for 15 minutes is reclaimed and the next in line promoted."""
    hold = await engine.request_booking(1, SINGLE_SEAT_EVENT, wants_hold=True)
    waiting = await engine.request_booking(2, SINGLE_SEAT_EVENT)
    clock.advance(minutes=16)

    result = await engine.sweep_expired_holds()

    assert result.expired_count == 1
    assert result.promoted_count == 1
    with pytest.raises(BookingNotFoundError):
        await engine.get_booking(hold.id, caller_id=1)
    assert (await engine.get_booking(waiting.id, caller_id=2)).status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_sweep_promotes_for_every_freed_seat(engine, clock):
    holds = [await engine.request_booking(user_id, SMALL_EVENT, wants_hold=True) for user_id in (1, 2)]
    waiting = [await engine.request_booking(user_id, SMALL_EVENT) for user_id in (3, 4, 5)]
    clock.advance(minutes=16)

    result = await engine.sweep_expired_holds()

    assert result.expired_count == 2
    assert result.promoted_count == 2
    assert (await engine.get_booking(waiting[0].id, caller_id=3)).status == BookingStatus.CONFIRMED
    assert (await engine.get_booking(waiting[1].id, caller_id=4)).status == BookingStatus.CONFIRMED
    assert await engine.waitlist_position(waiting[2].id, caller_id=5) == 1
    statuses = [(await engine.store.get_booking(h.id)).status for h in holds]
    assert all(s == BookingStatus.CANCELLED for s in statuses)
    assert result.event_ids == [SMALL_EVENT]


@pytest.mark.asyncio
async def test_sweep_leaves_live_holds_and_other_events(engine, clock):
    stale = await engine.request_booking(1, ROOMY_EVENT, wants_hold=True)
    clock.advance(minutes=5)
    later = await engine.request_booking(2, SMALL_EVENT, wants_hold=True)
    clock.advance(minutes=11)

    result = await engine.sweep_expired_holds()

    assert result.expired_count == 1
    assert (await engine.store.get_booking(stale.id)).status == BookingStatus.CANCELLED
    assert (await engine.get_booking(later.id, caller_id=2)).status == BookingStatus.HOLD


@pytest.mark.asyncio
async def test_sweep_with_nothing_expired(engine):
    await engine.request_booking(1, ROOMY_EVENT, wants_hold=True)

    result = await engine.sweep_expired_holds()

    assert (result.expired_count, result.promoted_count) == (0, 0)


@pytest.mark.asyncio
async def test_background_sweeper_runs_until_stopped(engine, clock):
    hold = await engine.request_booking(1, SINGLE_SEAT_EVENT, wants_hold=True)
    clock.advance(minutes=16)

    sweeper = ExpirySweeper(engine, interval=0.01)
    sweeper.start()
    await asyncio.sleep(0.05)
    assert sweeper.running
    await sweeper.stop()

    assert not sweeper.running
    assert (await engine.store.get_booking(hold.id)).status == BookingStatus.CANCELLED


@pytest.mark.asyncio
async def test_background_sweeper_survives_failed_pass(engine, monkeypatch):
    calls = []

    async def flaky_sweep():
        calls.append(1)
        if len(calls) == 1:
            raise ConnectionError("database unavailable")
        return await engine.sweep_expired_holds()

    sweeper = ExpirySweeper(engine, interval=0.01)
    monkeypatch.setattr(sweeper, "process_once", flaky_sweep)
    sweeper.start()
    await asyncio.sleep(0.05)
    await sweeper.stop()

    assert len(calls) >= 2


@pytest.mark.asyncio
async def test_background_sweep_drops_cached_availability(engine, clock, monkeypatch):
    invalidated = []

    async def record_invalidation(event_ids):
        invalidated.extend(event_ids)

    monkeypatch.setattr(expiry_sweeper, "invalidate_availability", record_invalidation)
    await engine.request_booking(1, SINGLE_SEAT_EVENT, wants_hold=True)
    await engine.request_booking(2, ROOMY_EVENT, wants_hold=True)
    clock.advance(minutes=16)

    result = await ExpirySweeper(engine).process_once()

    assert result.expired_count == 2
    assert sorted(invalidated) == [SINGLE_SEAT_EVENT, ROOMY_EVENT]
