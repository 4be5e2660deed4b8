"""
Booking entity and its state machine.

    (new) -> hold | confirmed | waitlisted
    hold -> confirmed | cancelled
    waitlisted -> confirmed | cancelled
    confirmed -> cancelled
    cancelled: terminal

Cancelled bookings are kept as history but count as absent everywhere else.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class BookingStatus(str, Enum):
    HOLD = "hold"
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.HOLD: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.WAITLISTED: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
}

INITIAL_STATUSES = frozenset({BookingStatus.HOLD, BookingStatus.CONFIRMED, BookingStatus.WAITLISTED})


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


@dataclass
class Booking:
    event_id: int
    user_id: int
    status: BookingStatus
    created_at: datetime
    hold_expires_at: Optional[datetime] = None
    waitlist_position: Optional[int] = None
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    # Assigned by the store on insert; increases with insertion order
    id: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.status != BookingStatus.CANCELLED

    def hold_is_live(self, now: datetime) -> bool:
        return (
            self.status == BookingStatus.HOLD
            and self.hold_expires_at is not None
            and now < self.hold_expires_at
        )

    def occupies_seat(self, now: datetime) -> bool:
        """Confirmed bookings and unexpired holds count against capacity."""
        return self.status == BookingStatus.CONFIRMED or self.hold_is_live(now)

    def fifo_key(self) -> tuple[datetime, int]:
        return (self.created_at, self.id or 0)

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status.value})>"
