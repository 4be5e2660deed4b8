"""
Hold lifecycle: time-boxed provisional reservations.

A hold occupies a seat until hold_expires_at. It is either confirmed by its
owner before then, cancelled by its owner, or released once expired, lazily
on a late confirm attempt or in bulk by the expiry sweeper. Holds never block
a seat indefinitely; the TTL is the only way an abandoned hold goes away.
"""

from datetime import datetime, timedelta

from campus_booking.core.exceptions import NotAHoldError
from campus_booking.core.logging import get_logger
from campus_booking.domain.booking import Booking, BookingStatus
from campus_booking.services.ledger import BookingLedger

logger = get_logger(__name__)

DEFAULT_HOLD_TTL = timedelta(minutes=15)


class HoldLifecycleManager:
    def __init__(self, ledger: BookingLedger, ttl: timedelta = DEFAULT_HOLD_TTL):
        self.ledger = ledger
        self.ttl = ttl

    def expiry_for(self, now: datetime) -> datetime:
        return now + self.ttl

    def is_expired(self, booking: Booking, now: datetime) -> bool:
        return booking.status == BookingStatus.HOLD and not booking.hold_is_live(now)

    async def confirm(self, booking: Booking) -> Booking:
        """
        hold -> confirmed. The caller must have checked expiry first and
        released the hold instead when it has lapsed.
        """
        if booking.status != BookingStatus.HOLD:
            raise NotAHoldError(booking.status.value)
        confirmed = await self.ledger.set_status(booking.id, BookingStatus.CONFIRMED)
        logger.info("hold_confirmed", booking_id=booking.id, user_id=booking.user_id, event_id=booking.event_id)
        return confirmed

    async def expire(self, booking: Booking) -> Booking:
        """System-driven hold -> cancelled once the TTL has elapsed."""
        expired_at = booking.hold_expires_at
        expired = await self.ledger.set_status(booking.id, BookingStatus.CANCELLED)
        logger.info(
            "hold_expired",
            booking_id=booking.id,
            user_id=booking.user_id,
            event_id=booking.event_id,
            expired_at=expired_at,
        )
        return expired

    async def expired_holds(self, event_id: int, now: datetime) -> list[Booking]:
        return [b for b in await self.ledger.bookings(event_id) if self.is_expired(b, now)]
