"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from campus_booking.domain.booking import BookingStatus


class BookingCreate(BaseModel):
    event_id: int = Field(..., gt=0)
    hold: bool = Field(default=False, description="Reserve the seat provisionally for 15 minutes")


class BookingResponse(BaseModel):
    id: int
    user_id: int
    event_id: int
    status: BookingStatus
    created_at: datetime
    hold_expires_at: Optional[datetime] = None
    waitlist_position: Optional[int] = None

    model_config = {"from_attributes": True}


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: str


class RescheduleRequest(BaseModel):
    event_id: int = Field(..., gt=0)


class WaitlistPositionResponse(BaseModel):
    booking_id: int
    position: int


class SweepResponse(BaseModel):
    expired_count: int
    promoted_count: int
