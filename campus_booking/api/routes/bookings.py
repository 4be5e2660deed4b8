"""
Booking endpoints: book, confirm a hold, cancel, reschedule, waitlist position.

Role and department eligibility are enforced here, before the engine is
called; the engine only ever sees pre-validated intents.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from campus_booking.api.deps import Identity, STUDENT_ROLE, get_engine, get_identity, require_staff
from campus_booking.domain.event import EventRef
from campus_booking.schemas.booking import (
    BookingCancelResponse,
    BookingCreate,
    BookingResponse,
    RescheduleRequest,
    SweepResponse,
    WaitlistPositionResponse,
)
from campus_booking.services.booking_service import BookingEngine
from campus_booking.services.cache_service import invalidate_availability

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def _check_eligibility(identity: Identity, event: EventRef) -> None:
    if identity.role != STUDENT_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only students can book events",
        )
    if event.department != identity.department:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"This event is only available for {event.department} students",
        )


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    identity: Identity = Depends(get_identity),
    engine: BookingEngine = Depends(get_engine),
):
    """
    Book a seat for an event.

    Returns a confirmed booking while seats remain (or a 15-minute hold when
    `hold` is set), and a waitlisted booking with its position otherwise.
    """
    event = await engine.get_event(booking_data.event_id)
    _check_eligibility(identity, event)
    booking = await engine.request_booking(identity.user_id, event.id, wants_hold=booking_data.hold)
    await invalidate_availability([event.id])
    return booking


@router.get("/", response_model=list[BookingResponse])
async def list_user_bookings(
    identity: Identity = Depends(get_identity),
    engine: BookingEngine = Depends(get_engine),
):
    """Active bookings of the caller, newest first."""
    return await engine.list_user_bookings(identity.user_id)


@router.post("/sweep", response_model=SweepResponse)
async def sweep_expired_holds(
    _: Identity = Depends(require_staff),
    engine: BookingEngine = Depends(get_engine),
):
    """Release expired holds now instead of waiting for the background sweeper."""
    result = await engine.sweep_expired_holds()
    await invalidate_availability(result.event_ids)
    return SweepResponse(expired_count=result.expired_count, promoted_count=result.promoted_count)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    identity: Identity = Depends(get_identity),
    engine: BookingEngine = Depends(get_engine),
):
    return await engine.get_booking(booking_id, identity.user_id)


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_hold(
    booking_id: int,
    identity: Identity = Depends(get_identity),
    engine: BookingEngine = Depends(get_engine),
):
    """Confirm a hold before it expires. An expired hold answers 410 and frees the seat."""
    held = await engine.get_booking(booking_id, identity.user_id)
    try:
        return await engine.confirm_hold(booking_id, identity.user_id)
    finally:
        await invalidate_availability([held.event_id])


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: int,
    identity: Identity = Depends(get_identity),
    engine: BookingEngine = Depends(get_engine),
):
    """Cancel a booking. A freed seat goes to the first student on the waitlist."""
    booking = await engine.cancel_booking(booking_id, identity.user_id)
    await invalidate_availability([booking.event_id])
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking_id=booking.id,
        status=booking.status.value,
    )


@router.post("/{booking_id}/reschedule", response_model=BookingResponse)
async def reschedule_booking(
    booking_id: int,
    request: RescheduleRequest,
    identity: Identity = Depends(get_identity),
    engine: BookingEngine = Depends(get_engine),
):
    """Move a confirmed or waitlisted booking to another event atomically."""
    current = await engine.get_booking(booking_id, identity.user_id)
    target = await engine.get_event(request.event_id)
    _check_eligibility(identity, target)
    moved = await engine.reschedule(booking_id, identity.user_id, target.id)
    await invalidate_availability([current.event_id, target.id])
    return moved


@router.get("/{booking_id}/waitlist-position", response_model=WaitlistPositionResponse)
async def waitlist_position(
    booking_id: int,
    identity: Identity = Depends(get_identity),
    engine: BookingEngine = Depends(get_engine),
):
    position = await engine.waitlist_position(booking_id, identity.user_id)
    return WaitlistPositionResponse(booking_id=booking_id, position=position)
