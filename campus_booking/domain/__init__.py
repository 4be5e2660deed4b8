from campus_booking.domain.booking import Booking, BookingStatus
from campus_booking.domain.event import EventRef

__all__ = ["Booking", "BookingStatus", "EventRef"]
