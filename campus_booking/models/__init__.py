from campus_booking.models.event import Event
from campus_booking.models.booking import Booking

__all__ = ["Event", "Booking"]
