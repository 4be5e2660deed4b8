from campus_booking.schemas.booking import (
    BookingCreate, BookingResponse, BookingCancelResponse,
    RescheduleRequest, WaitlistPositionResponse, SweepResponse,
)
from campus_booking.schemas.event import EventAvailabilityResponse

__all__ = [
    "BookingCreate", "BookingResponse", "BookingCancelResponse",
    "RescheduleRequest", "WaitlistPositionResponse", "SweepResponse",
    "EventAvailabilityResponse",
]
