"""
Booking engine: the intents request handlers call.

CONCURRENCY STRATEGY: per-event serialization with bounded retry
================================================================

Problem:
  Two students ask for the last seat at the same time. Both read
  occupancy = capacity - 1, both decide "confirmed", both write.
  Result: the event silently exceeds its effective capacity.

Solution:
  Every intent runs as one unit inside BookingStore.transaction(*event_ids).
  The sequence [read occupancy -> decide status -> write booking], and
  [remove booking -> promote from waitlist], happen entirely inside that
  boundary, so they are atomic per event.

  - The in-memory store serializes with one asyncio.Lock per event.
  - The SQL store uses optimistic locking on events.version: a transaction
    that wrote anything bumps the version of each event it read with
    WHERE version = :read_version. A zero rowcount means someone else
    committed first; the transaction rolls back and raises
    StaleSnapshotError.

  On StaleSnapshotError the whole intent is re-run against fresh state, up to
  max_retry_attempts times, then ConcurrencyConflictError is raised.
  Operations on different events never contend.

Seat-freeing changes (cancel, hold expiry, reschedule away) promote from the
waitlist inside the same transaction, before the intent returns, so the
caller never sees a stale waitlist.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Optional, TypeVar

from campus_booking.core.clock import Clock, utcnow
from campus_booking.core.exceptions import (
    AlreadyBookedError,
    BookingEngineError,
    BookingNotFoundError,
    ConcurrencyConflictError,
    DuplicateBookingError,
    EventNotFoundError,
    HoldExpiredError,
    InvalidTransitionError,
    NotAHoldError,
    NotOwnerError,
)
from campus_booking.core.logging import get_logger
from campus_booking.core.metrics import (
    booking_latency,
    engine_conflicts,
    engine_retries,
    record_booking_outcome,
    record_cancellation,
    record_expired_holds,
    record_promotions,
)
from campus_booking.domain.booking import Booking, BookingStatus
from campus_booking.domain.event import EventRef
from campus_booking.services.capacity import effective_capacity, initial_status, remaining_slots
from campus_booking.services.expiry_sweeper import SweepResult, release_expired_holds
from campus_booking.services.holds import DEFAULT_HOLD_TTL, HoldLifecycleManager
from campus_booking.services.interfaces.booking_store import BookingStore, BookingTransaction, StaleSnapshotError
from campus_booking.services.interfaces.event_catalog import EventCatalog
from campus_booking.services.ledger import BookingLedger
from campus_booking.services.transfer import RESCHEDULABLE, TransferOrchestrator
from campus_booking.services.waitlist import WaitlistManager

logger = get_logger(__name__)

MAX_RETRY_ATTEMPTS = 3

T = TypeVar("T")


@dataclass
class Availability:
    event_id: int
    base_capacity: int
    effective_capacity: int
    allow_overbooking: bool
    confirmed_count: int
    held_count: int
    waitlisted_count: int
    remaining_slots: int


@dataclass
class EngineContext:
    """Engine components bound to one storage transaction."""

    ledger: BookingLedger
    holds: HoldLifecycleManager
    waitlist: WaitlistManager
    transfer: TransferOrchestrator


class BookingEngine:
    def __init__(
        self,
        store: BookingStore,
        catalog: EventCatalog,
        clock: Clock = utcnow,
        hold_ttl: timedelta = DEFAULT_HOLD_TTL,
        max_retry_attempts: int = MAX_RETRY_ATTEMPTS,
    ):
        self.store = store
        self.catalog = catalog
        self.clock = clock
        self.hold_ttl = hold_ttl
        self.max_retry_attempts = max_retry_attempts

    def _context(self, tx: BookingTransaction) -> EngineContext:
        ledger = BookingLedger(tx, self.clock)
        waitlist = WaitlistManager(ledger)
        return EngineContext(
            ledger=ledger,
            holds=HoldLifecycleManager(ledger, self.hold_ttl),
            waitlist=waitlist,
            transfer=TransferOrchestrator(ledger, waitlist),
        )

    async def _in_transaction(
        self,
        event_ids: tuple[int, ...],
        operation: Callable[[EngineContext], Awaitable[T]],
        name: str,
    ) -> T:
        with booking_latency.labels(operation=name).time():
            for attempt in range(1, self.max_retry_attempts + 1):
                try:
                    async with self.store.transaction(*event_ids) as tx:
                        return await operation(self._context(tx))
                except StaleSnapshotError as exc:
                    engine_retries.inc()
                    logger.info(
                        "booking_retry",
                        operation=name,
                        event_id=exc.event_id,
                        attempt=attempt,
                        reason="version_conflict",
                    )
                except ConcurrencyConflictError:
                    engine_conflicts.inc()
                    raise

        engine_conflicts.inc()
        logger.warning("booking_conflict", operation=name, event_ids=list(event_ids))
        raise ConcurrencyConflictError()

    async def get_event(self, event_id: int) -> EventRef:
        event = await self.catalog.get_event(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    async def get_booking(self, booking_id: int, caller_id: int) -> Booking:
        booking = await self.store.get_booking(booking_id)
        # Cancelled and never-existing ids are reported the same way
        if booking is None or not booking.is_active:
            raise BookingNotFoundError(booking_id)
        if booking.user_id != caller_id:
            raise NotOwnerError(booking_id)
        return booking

    @staticmethod
    async def _locked(ctx: EngineContext, booking_id: int) -> Booking:
        booking = await ctx.ledger.get(booking_id)
        if booking is None or not booking.is_active:
            raise BookingNotFoundError(booking_id)
        return booking

    async def _release(self, ctx: EngineContext, previous: BookingStatus, event_id: int) -> list[Booking]:
        """Keep the waitlist consistent after a booking of ``event_id`` left."""
        if previous == BookingStatus.WAITLISTED:
            await ctx.waitlist.recompute_positions(event_id)
            return []
        event = await self.catalog.get_event(event_id)
        if event is None:
            logger.warning("promotion_skipped_unknown_event", event_id=event_id)
            return []
        return await ctx.waitlist.promote(event)

    async def request_booking(self, user_id: int, event_id: int, wants_hold: bool = False) -> Booking:
        """
        Book a seat: confirmed (or held, if asked) while the event has room,
        waitlisted otherwise.
        """

        async def operation(ctx: EngineContext) -> tuple[Booking, list[Booking]]:
            event = await self.get_event(event_id)
            now = self.clock()
            promoted: list[Booking] = []
            existing = await ctx.ledger.find_active(user_id, event_id)
            if existing is not None:
                if not ctx.holds.is_expired(existing, now):
                    raise AlreadyBookedError(user_id, event_id)
                # The caller's own lapsed hold: release it and serve the waitlist first
                await ctx.holds.expire(existing)
                promoted = await ctx.waitlist.promote(event)

            capacity = effective_capacity(event.base_capacity, event.allow_overbooking)
            occupancy = await ctx.ledger.active_occupancy(event_id, now)
            status = initial_status(occupancy, capacity, wants_hold)

            position = await ctx.waitlist.next_position(event_id) if status == BookingStatus.WAITLISTED else None
            try:
                booking = await ctx.ledger.insert(
                    Booking(
                        event_id=event_id,
                        user_id=user_id,
                        status=status,
                        created_at=now,
                        hold_expires_at=ctx.holds.expiry_for(now) if status == BookingStatus.HOLD else None,
                        waitlist_position=position,
                    )
                )
            except DuplicateBookingError as exc:
                # A concurrent request of the same user committed first
                raise AlreadyBookedError(user_id, event_id) from exc
            if status == BookingStatus.WAITLISTED:
                await ctx.waitlist.recompute_positions(event_id)
                booking = await ctx.ledger.get(booking.id)
            return booking, promoted

        try:
            booking, promoted = await self._in_transaction((event_id,), operation, "request_booking")
        except BookingEngineError as exc:
            record_booking_outcome("rejected")
            logger.warning("booking_rejected", user_id=user_id, event_id=event_id, reason=type(exc).__name__)
            raise

        record_booking_outcome(booking.status.value)
        record_promotions(len(promoted))
        logger.info(
            "booking_waitlisted" if booking.status == BookingStatus.WAITLISTED else "booking_created",
            booking_id=booking.id,
            user_id=user_id,
            event_id=event_id,
            status=booking.status,
            waitlist_position=booking.waitlist_position,
            hold_expires_at=booking.hold_expires_at,
        )
        return booking

    async def confirm_hold(self, booking_id: int, caller_id: int) -> Booking:
        """
        Turn a live hold into a confirmed booking.

        A lapsed hold is released (and the waitlist promoted) and that change
        is committed before HoldExpiredError reaches the caller.
        """
        booking = await self.get_booking(booking_id, caller_id)
        if booking.status != BookingStatus.HOLD:
            raise NotAHoldError(booking.status.value)

        async def operation(ctx: EngineContext) -> tuple[Optional[Booking], list[Booking]]:
            current = await self._locked(ctx, booking_id)
            if current.status != BookingStatus.HOLD:
                raise NotAHoldError(current.status.value)
            if ctx.holds.is_expired(current, self.clock()):
                await ctx.holds.expire(current)
                return None, await self._release(ctx, BookingStatus.HOLD, current.event_id)
            return await ctx.holds.confirm(current), []

        confirmed, promoted = await self._in_transaction((booking.event_id,), operation, "confirm_hold")
        record_promotions(len(promoted))
        if confirmed is None:
            record_expired_holds(1, "lazy")
            raise HoldExpiredError(booking_id)
        return confirmed

    async def cancel_booking(self, booking_id: int, caller_id: int) -> Booking:
        booking = await self.get_booking(booking_id, caller_id)

        async def operation(ctx: EngineContext) -> tuple[Booking, BookingStatus, list[Booking]]:
            current = await self._locked(ctx, booking_id)
            previous = current.status
            cancelled = await ctx.ledger.remove(booking_id)
            promoted = await self._release(ctx, previous, current.event_id)
            return cancelled, previous, promoted

        cancelled, previous, promoted = await self._in_transaction(
            (booking.event_id,), operation, "cancel_booking"
        )
        record_cancellation(previous.value)
        record_promotions(len(promoted))
        logger.info(
            "booking_cancelled",
            booking_id=booking_id,
            user_id=caller_id,
            event_id=booking.event_id,
            previous_status=previous,
            promoted=[b.id for b in promoted],
        )
        return cancelled

    async def reschedule(self, booking_id: int, caller_id: int, new_event_id: int) -> Booking:
        """Move a confirmed or waitlisted booking to another event in one step."""
        booking = await self.get_booking(booking_id, caller_id)
        if booking.status not in RESCHEDULABLE:
            raise InvalidTransitionError(
                booking.status.value,
                "rescheduled",
                "Only confirmed or waitlisted bookings can be rescheduled; confirm or cancel the hold first",
            )
        await self.get_event(new_event_id)

        async def operation(ctx: EngineContext) -> tuple[Booking, list[Booking]]:
            current = await self._locked(ctx, booking_id)
            source = await self.get_event(current.event_id)
            target = await self.get_event(new_event_id)
            return await ctx.transfer.reschedule(current, source, target)

        moved, promoted = await self._in_transaction(
            (booking.event_id, new_event_id), operation, "reschedule"
        )
        record_promotions(len(promoted))
        return moved

    async def waitlist_position(self, booking_id: int, caller_id: int) -> int:
        booking = await self.get_booking(booking_id, caller_id)

        async def operation(ctx: EngineContext) -> int:
            return ctx.waitlist.position_of(await self._locked(ctx, booking_id))

        return await self._in_transaction((booking.event_id,), operation, "waitlist_position")

    async def sweep_expired_holds(self) -> SweepResult:
        """
        Release every expired hold, batching promotion per affected event.
        An event that stays contended is left for the next pass.
        """
        result = SweepResult()
        event_ids = await self.store.events_with_expired_holds(self.clock())

        for event_id in event_ids:
            event = await self.catalog.get_event(event_id)
            if event is None:
                logger.warning("sweep_skipped_unknown_event", event_id=event_id)
                continue

            async def operation(ctx: EngineContext, event: EventRef = event):
                return await release_expired_holds(ctx.holds, ctx.waitlist, event, self.clock())

            try:
                expired, promoted = await self._in_transaction((event_id,), operation, "sweep")
            except ConcurrencyConflictError:
                logger.warning("sweep_event_deferred", event_id=event_id)
                continue
            if expired:
                result.event_ids.append(event_id)
            result.expired_count += len(expired)
            result.promoted_count += len(promoted)

        record_expired_holds(result.expired_count, "sweep")
        record_promotions(result.promoted_count)
        if result.expired_count:
            logger.info(
                "holds_swept",
                expired=result.expired_count,
                promoted=result.promoted_count,
                events=len(event_ids),
            )
        return result

    async def list_user_bookings(self, user_id: int) -> list[Booking]:
        return await self.store.list_for_user(user_id)

    async def event_availability(self, event_id: int) -> Availability:
        event = await self.get_event(event_id)

        async def operation(ctx: EngineContext) -> Availability:
            now = self.clock()
            bookings = await ctx.ledger.bookings(event_id)
            confirmed = sum(1 for b in bookings if b.status == BookingStatus.CONFIRMED)
            held = sum(1 for b in bookings if b.hold_is_live(now))
            waitlisted = sum(1 for b in bookings if b.status == BookingStatus.WAITLISTED)
            capacity = effective_capacity(event.base_capacity, event.allow_overbooking)
            return Availability(
                event_id=event_id,
                base_capacity=event.base_capacity,
                effective_capacity=capacity,
                allow_overbooking=event.allow_overbooking,
                confirmed_count=confirmed,
                held_count=held,
                waitlisted_count=waitlisted,
                remaining_slots=remaining_slots(capacity, confirmed + held),
            )

        return await self._in_transaction((event_id,), operation, "event_availability")
