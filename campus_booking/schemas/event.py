"""
Pydantic schemas for event availability.
"""

from pydantic import BaseModel


class EventAvailabilityResponse(BaseModel):
    event_id: int
    base_capacity: int
    effective_capacity: int
    allow_overbooking: bool
    confirmed_count: int
    held_count: int
    waitlisted_count: int
    remaining_slots: int
    cached: bool = False

    model_config = {"from_attributes": True}
