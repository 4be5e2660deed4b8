"""
In-memory booking store and event catalog.

Single-process storage for development and tests. Bookings live in an
id-indexed arena plus an event index; each event has its own asyncio.Lock.

A transaction locks its events in ascending id order (so two transactions
over the same pair of events cannot deadlock), works on private copies of
the bookings it touches and only writes them back when the block exits
cleanly. An exception anywhere inside the block discards every staged change.
"""

import asyncio
import itertools
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import AsyncIterator, Optional

from campus_booking.core.exceptions import ConcurrencyConflictError
from campus_booking.core.logging import get_logger
from campus_booking.domain.booking import Booking, BookingStatus
from campus_booking.domain.event import EventRef
from campus_booking.services.interfaces.booking_store import BookingStore, BookingTransaction
from campus_booking.services.interfaces.event_catalog import EventCatalog

logger = get_logger(__name__)


class _MemoryTransaction(BookingTransaction):
    def __init__(self, store: "InMemoryBookingStore", event_ids: frozenset[int]):
        self._store = store
        self._event_ids = event_ids
        self._staged: dict[int, Booking] = {}

    def _check_scope(self, event_id: int) -> None:
        if event_id not in self._event_ids:
            raise RuntimeError(f"Event {event_id} is not locked by this transaction")

    def _stage(self, booking: Booking) -> Booking:
        staged = self._staged.get(booking.id)
        if staged is None:
            staged = replace(booking)
            self._staged[booking.id] = staged
        return staged

    async def get(self, booking_id: int) -> Optional[Booking]:
        if booking_id in self._staged:
            return self._staged[booking_id]
        booking = self._store._bookings.get(booking_id)
        if booking is None:
            return None
        self._check_scope(booking.event_id)
        return self._stage(booking)

    async def list_for_event(self, event_id: int) -> list[Booking]:
        self._check_scope(event_id)
        ids = set(self._store._by_event[event_id])
        ids.update(b.id for b in self._staged.values() if b.event_id == event_id)
        bookings = [await self.get(booking_id) for booking_id in sorted(ids)]
        return sorted(
            (b for b in bookings if b.is_active),
            key=Booking.fifo_key,
        )

    async def find_active(self, user_id: int, event_id: int) -> Optional[Booking]:
        for booking in await self.list_for_event(event_id):
            if booking.user_id == user_id:
                return booking
        return None

    async def add(self, booking: Booking) -> Booking:
        self._check_scope(booking.event_id)
        booking.id = next(self._store._ids)
        self._staged[booking.id] = booking
        return booking

    async def save(self, booking: Booking) -> Booking:
        self._check_scope(booking.event_id)
        self._staged[booking.id] = booking
        return booking

    def commit(self) -> None:
        for booking_id, booking in self._staged.items():
            self._store._bookings[booking_id] = replace(booking)
            self._store._by_event[booking.event_id].add(booking_id)


class InMemoryBookingStore(BookingStore):
    def __init__(self, lock_timeout: float = 5.0):
        self.lock_timeout = lock_timeout
        self._bookings: dict[int, Booking] = {}
        self._by_event: defaultdict[int, set[int]] = defaultdict(set)
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._ids = itertools.count(1)

    @asynccontextmanager
    async def transaction(self, *event_ids: int) -> AsyncIterator[BookingTransaction]:
        scope = frozenset(event_ids)
        acquired: list[asyncio.Lock] = []
        try:
            for event_id in sorted(scope):
                lock = self._locks[event_id]
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=self.lock_timeout)
                except asyncio.TimeoutError:
                    logger.warning("event_lock_timeout", event_id=event_id, timeout=self.lock_timeout)
                    raise ConcurrencyConflictError()
                acquired.append(lock)

            tx = _MemoryTransaction(self, scope)
            yield tx
            tx.commit()
        finally:
            for lock in reversed(acquired):
                lock.release()

    async def get_booking(self, booking_id: int) -> Optional[Booking]:
        booking = self._bookings.get(booking_id)
        return replace(booking) if booking else None

    async def list_for_user(self, user_id: int) -> list[Booking]:
        bookings = [replace(b) for b in self._bookings.values() if b.user_id == user_id and b.is_active]
        return sorted(bookings, key=Booking.fifo_key, reverse=True)

    async def events_with_expired_holds(self, now: datetime) -> list[int]:
        return sorted({
            b.event_id
            for b in self._bookings.values()
            if b.status == BookingStatus.HOLD and not b.hold_is_live(now)
        })


class InMemoryEventCatalog(EventCatalog):
    def __init__(self, events: Optional[list[EventRef]] = None):
        self._events: dict[int, EventRef] = {e.id: e for e in events or []}

    async def get_event(self, event_id: int) -> Optional[EventRef]:
        return self._events.get(event_id)

    def put(self, event: EventRef) -> EventRef:
        """Add an event or replace its capacity policy."""
        if event.base_capacity < 1:
            raise ValueError("base_capacity must be >= 1")
        self._events[event.id] = event
        return event

    def remove(self, event_id: int) -> None:
        self._events.pop(event_id, None)
