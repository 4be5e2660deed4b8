"""
Event availability endpoint with Redis caching.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from campus_booking.api.deps import get_engine
from campus_booking.core.logging import get_logger
from campus_booking.schemas.event import EventAvailabilityResponse
from campus_booking.services.booking_service import BookingEngine
from campus_booking.services.cache_service import get_cached_availability, set_cached_availability

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.get("/{event_id}/availability", response_model=EventAvailabilityResponse)
async def get_event_availability(
    event_id: int,
    engine: BookingEngine = Depends(get_engine),
):
    """
    Seat counts for an event: confirmed, held, waitlisted and remaining.
    Cached briefly in Redis; every booking change on the event drops the entry.
    """
    cached = await get_cached_availability(event_id)
    if cached:
        logger.info("availability_cache_hit", event_id=event_id)
        cached["cached"] = True
        return EventAvailabilityResponse(**cached)

    availability = asdict(await engine.event_availability(event_id))
    await set_cached_availability(event_id, availability)
    return EventAvailabilityResponse(**availability)
