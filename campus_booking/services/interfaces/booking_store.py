"""
Booking storage interface.

Every engine operation runs inside ``transaction(*event_ids)``, which is the
serialization boundary for those events' booking sets: between entering and
leaving the block, no other transaction can commit a change to any of those
events that this one did not see. Implementations:

- InMemoryBookingStore: per-event asyncio locks, staged writes
- SqlBookingStore: optimistic version check on the events row

Writes inside a transaction are all-or-nothing. If the block raises, nothing
is persisted.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncContextManager, Optional

from campus_booking.domain.booking import Booking


class StaleSnapshotError(Exception):
    """
    The events a transaction read were changed by someone else before it
    could commit. Internal: the engine retries and eventually maps it to
    ConcurrencyConflictError.
    """

    def __init__(self, event_id: int):
        super().__init__(f"Event {event_id} changed concurrently")
        self.event_id = event_id


class BookingTransaction(ABC):
    """Reads and writes scoped to the events locked by one transaction."""

    @abstractmethod
    async def get(self, booking_id: int) -> Optional[Booking]:
        pass

    @abstractmethod
    async def list_for_event(self, event_id: int) -> list[Booking]:
        """Non-cancelled bookings of the event, oldest first."""
        pass

    @abstractmethod
    async def find_active(self, user_id: int, event_id: int) -> Optional[Booking]:
        pass

    @abstractmethod
    async def add(self, booking: Booking) -> Booking:
        """Persist a new booking and return it with its id assigned."""
        pass

    @abstractmethod
    async def save(self, booking: Booking) -> Booking:
        pass


class BookingStore(ABC):

    @abstractmethod
    def transaction(self, *event_ids: int) -> AsyncContextManager[BookingTransaction]:
        pass

    @abstractmethod
    async def get_booking(self, booking_id: int) -> Optional[Booking]:
        """Unlocked read, used to find which event a booking belongs to."""
        pass

    @abstractmethod
    async def list_for_user(self, user_id: int) -> list[Booking]:
        """Non-cancelled bookings of the user, newest first."""
        pass

    @abstractmethod
    async def events_with_expired_holds(self, now: datetime) -> list[int]:
        pass
