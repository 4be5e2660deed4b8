"""
Capacity resolution.

Effective capacity is the threshold seats are checked against once the
overbooking allowance is applied. It is derived on every check and never
stored, because capacity policy can change between requests.

Rounding is ceiling: ceil(base * 1.05). Integer arithmetic is used since
20 * 1.05 is 21.000000000000004 in floating point and would round up to 22.
"""

from campus_booking.domain.booking import BookingStatus

OVERBOOKING_PERCENT = 5


def effective_capacity(base_capacity: int, allow_overbooking: bool) -> int:
    if base_capacity < 1:
        raise ValueError(f"base_capacity must be >= 1, got {base_capacity}")
    if not allow_overbooking:
        return base_capacity
    extra = -(-base_capacity * OVERBOOKING_PERCENT // 100)
    return base_capacity + extra


def remaining_slots(capacity: int, occupancy: int) -> int:
    return max(0, capacity - occupancy)


def initial_status(occupancy: int, capacity: int, wants_hold: bool) -> BookingStatus:
    """Status a new booking enters with, given the event's current occupancy."""
    if occupancy >= capacity:
        return BookingStatus.WAITLISTED
    return BookingStatus.HOLD if wants_hold else BookingStatus.CONFIRMED
