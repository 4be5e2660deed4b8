"""
Waitlist management: FIFO ordering, position renumbering, promotion.

Order is created_at ascending; bookings created at the same instant keep
their insertion order (store-assigned ids increase monotonically).
Positions are 1..N with no gaps after every change to an event's waitlist.
"""

from campus_booking.core.logging import get_logger
from campus_booking.core.exceptions import NotWaitlistedError
from campus_booking.domain.booking import Booking, BookingStatus
from campus_booking.domain.event import EventRef
from campus_booking.services.capacity import effective_capacity
from campus_booking.services.ledger import BookingLedger

logger = get_logger(__name__)


class WaitlistManager:
    def __init__(self, ledger: BookingLedger):
        self.ledger = ledger

    async def waitlisted(self, event_id: int) -> list[Booking]:
        queue = [b for b in await self.ledger.bookings(event_id) if b.status == BookingStatus.WAITLISTED]
        # sorted() is stable, so equal keys keep the store's insertion order
        return sorted(queue, key=Booking.fifo_key)

    async def next_position(self, event_id: int) -> int:
        return len(await self.waitlisted(event_id)) + 1

    async def recompute_positions(self, event_id: int) -> list[Booking]:
        queue = await self.waitlisted(event_id)
        for position, booking in enumerate(queue, start=1):
            if booking.waitlist_position != position:
                booking.waitlist_position = position
                booking.updated_at = self.ledger.clock()
                await self.ledger.tx.save(booking)
        return queue

    async def promote(self, event: EventRef) -> list[Booking]:
        """
        Confirm waitlisted bookings, earliest first, until the event is full
        or the waitlist is empty. Several seats can free at once (bulk hold
        expiry), so this loops rather than promoting a single entry.
        """
        capacity = effective_capacity(event.base_capacity, event.allow_overbooking)
        now = self.ledger.clock()
        occupancy = await self.ledger.active_occupancy(event.id, now)
        queue = await self.waitlisted(event.id)

        promoted = []
        while occupancy < capacity and queue:
            head = queue.pop(0)
            previous_position = head.waitlist_position
            promoted.append(await self.ledger.set_status(head.id, BookingStatus.CONFIRMED))
            occupancy += 1
            logger.info(
                "waitlist_promoted",
                booking_id=head.id,
                user_id=head.user_id,
                event_id=event.id,
                previous_position=previous_position,
            )

        await self.recompute_positions(event.id)
        return promoted

    def position_of(self, booking: Booking) -> int:
        if booking.status != BookingStatus.WAITLISTED or booking.waitlist_position is None:
            raise NotWaitlistedError(booking.id, booking.status.value)
        return booking.waitlist_position
