"""
Booking engine error taxonomy.

Every error here is recoverable by the caller and carries the HTTP status the
API layer answers with. Storage failures are not wrapped: they propagate as
whatever the driver raised, after the transaction has been rolled back.
"""

from fastapi import status


class BookingEngineError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EventNotFoundError(BookingEngineError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, event_id: int):
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class BookingNotFoundError(BookingEngineError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, booking_id: int):
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class NotOwnerError(BookingEngineError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, booking_id: int):
        super().__init__("You can only manage your own bookings")
        self.booking_id = booking_id


class AlreadyBookedError(BookingEngineError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, user_id: int, event_id: int):
        super().__init__("You already have a booking for this event")
        self.user_id = user_id
        self.event_id = event_id


class DuplicateBookingError(BookingEngineError):
    """Raised by the ledger itself when the one-active-booking rule would break."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, user_id: int, event_id: int):
        super().__init__(f"User {user_id} already holds an active booking for event {event_id}")
        self.user_id = user_id
        self.event_id = event_id


class InvalidTransitionError(BookingEngineError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, target: str, message: str = ""):
        super().__init__(message or f"Invalid booking transition: {current} -> {target}")
        self.current = current
        self.target = target


class NotAHoldError(InvalidTransitionError):
    def __init__(self, current: str):
        super().__init__(current, "confirmed", f"Only holds can be confirmed (booking is {current})")


class HoldExpiredError(BookingEngineError):
    status_code = status.HTTP_410_GONE

    def __init__(self, booking_id: int):
        super().__init__("Hold has expired and the seat was released")
        self.booking_id = booking_id


class NotWaitlistedError(BookingEngineError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, booking_id: int, current: str):
        super().__init__(f"Booking {booking_id} is not waitlisted (status: {current})")
        self.booking_id = booking_id
        self.current = current


class ConcurrencyConflictError(BookingEngineError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Booking failed due to high demand. Please try again."):
        super().__init__(message)
