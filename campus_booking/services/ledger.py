"""
Booking ledger: the per-event source of truth for seat decisions.

A ledger wraps one storage transaction, so everything it reads is a
consistent snapshot of the events that transaction locked. Any removal that
frees a seat must be followed by WaitlistManager.promote() before the
transaction ends; BookingEngine is responsible for that coupling.
"""

from datetime import datetime
from typing import Optional

from campus_booking.core.clock import Clock
from campus_booking.core.exceptions import (
    BookingNotFoundError,
    DuplicateBookingError,
    InvalidTransitionError,
)
from campus_booking.domain.booking import Booking, BookingStatus, INITIAL_STATUSES, can_transition
from campus_booking.services.interfaces.booking_store import BookingTransaction


class BookingLedger:
    def __init__(self, tx: BookingTransaction, clock: Clock):
        self.tx = tx
        self.clock = clock

    async def get(self, booking_id: int) -> Optional[Booking]:
        return await self.tx.get(booking_id)

    async def bookings(self, event_id: int) -> list[Booking]:
        return await self.tx.list_for_event(event_id)

    async def find_active(self, user_id: int, event_id: int) -> Optional[Booking]:
        return await self.tx.find_active(user_id, event_id)

    async def active_occupancy(self, event_id: int, now: Optional[datetime] = None) -> int:
        """Confirmed bookings plus holds that have not expired, swept or not."""
        now = now or self.clock()
        return sum(1 for b in await self.bookings(event_id) if b.occupies_seat(now))

    async def insert(self, booking: Booking) -> Booking:
        if booking.status not in INITIAL_STATUSES:
            raise InvalidTransitionError("new", booking.status.value)
        if await self.tx.find_active(booking.user_id, booking.event_id):
            raise DuplicateBookingError(booking.user_id, booking.event_id)
        booking.updated_at = booking.created_at
        return await self.tx.add(booking)

    async def remove(self, booking_id: int) -> Optional[Booking]:
        """
        Cancel a booking. Idempotent: an unknown or already cancelled id is a
        no-op and returns None, so retries are harmless.
        """
        booking = await self.tx.get(booking_id)
        if booking is None or booking.status == BookingStatus.CANCELLED:
            return None
        now = self.clock()
        booking.status = BookingStatus.CANCELLED
        booking.hold_expires_at = None
        booking.waitlist_position = None
        booking.cancelled_at = now
        booking.updated_at = now
        return await self.tx.save(booking)

    async def set_status(self, booking_id: int, new_status: BookingStatus, **fields) -> Booking:
        """
        Move a booking along the state machine. Fields that only belong to the
        old status are cleared; ``fields`` can set the ones the new status needs.
        """
        booking = await self.tx.get(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        if not can_transition(booking.status, new_status):
            raise InvalidTransitionError(booking.status.value, new_status.value)

        booking.status = new_status
        if new_status != BookingStatus.HOLD:
            booking.hold_expires_at = None
        if new_status != BookingStatus.WAITLISTED:
            booking.waitlist_position = None
        if new_status == BookingStatus.CANCELLED:
            booking.cancelled_at = self.clock()
        for name, value in fields.items():
            setattr(booking, name, value)
        booking.updated_at = self.clock()
        return await self.tx.save(booking)
