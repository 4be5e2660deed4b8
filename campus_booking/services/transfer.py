"""
Transfer orchestration: move a booking to another event (reschedule).

The caller opens one transaction over both events, so leaving the source
event and joining the target commit together. Nobody can observe the user
holding neither booking, and a failure in either half leaves both events
untouched.
"""

from campus_booking.core.exceptions import AlreadyBookedError, InvalidTransitionError
from campus_booking.core.logging import get_logger
from campus_booking.domain.booking import Booking, BookingStatus
from campus_booking.domain.event import EventRef
from campus_booking.services.capacity import effective_capacity, initial_status
from campus_booking.services.ledger import BookingLedger
from campus_booking.services.waitlist import WaitlistManager

logger = get_logger(__name__)

RESCHEDULABLE = frozenset({BookingStatus.CONFIRMED, BookingStatus.WAITLISTED})


class TransferOrchestrator:
    def __init__(self, ledger: BookingLedger, waitlist: WaitlistManager):
        self.ledger = ledger
        self.waitlist = waitlist

    async def reschedule(self, booking: Booking, source: EventRef, target: EventRef) -> tuple[Booking, list[Booking]]:
        """
        Returns the new booking in ``target`` and whatever was promoted in
        ``source`` as a consequence.
        """
        if booking.status not in RESCHEDULABLE:
            raise InvalidTransitionError(
                booking.status.value,
                "rescheduled",
                "Only confirmed or waitlisted bookings can be rescheduled; confirm or cancel the hold first",
            )
        if await self.ledger.find_active(booking.user_id, target.id):
            raise AlreadyBookedError(booking.user_id, target.id)

        was_confirmed = booking.status == BookingStatus.CONFIRMED
        await self.ledger.remove(booking.id)
        if was_confirmed:
            promoted = await self.waitlist.promote(source)
        else:
            promoted = []
            await self.waitlist.recompute_positions(source.id)

        now = self.ledger.clock()
        capacity = effective_capacity(target.base_capacity, target.allow_overbooking)
        occupancy = await self.ledger.active_occupancy(target.id, now)
        status = initial_status(occupancy, capacity, wants_hold=False)
        position = await self.waitlist.next_position(target.id) if status == BookingStatus.WAITLISTED else None
        moved = await self.ledger.insert(
            Booking(
                event_id=target.id,
                user_id=booking.user_id,
                status=status,
                created_at=now,
                waitlist_position=position,
            )
        )
        if status == BookingStatus.WAITLISTED:
            await self.waitlist.recompute_positions(target.id)
            moved = await self.ledger.get(moved.id)

        logger.info(
            "booking_rescheduled",
            user_id=booking.user_id,
            from_booking_id=booking.id,
            from_event_id=source.id,
            to_booking_id=moved.id,
            to_event_id=target.id,
            status=moved.status,
        )
        return moved, promoted
