"""
Expiry sweeper: reclaims holds whose TTL has elapsed.

One pass finds every event with expired holds, cancels all of them in a
single transaction per event and then promotes from that event's waitlist
once, so promotion sees the cumulative freed capacity. ExpirySweeper runs
passes on an interval for the lifetime of the application.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from campus_booking.core.logging import get_logger
from campus_booking.services.cache_service import invalidate_availability
from campus_booking.domain.booking import Booking
from campus_booking.domain.event import EventRef
from campus_booking.services.holds import HoldLifecycleManager
from campus_booking.services.waitlist import WaitlistManager

if TYPE_CHECKING:
    from campus_booking.services.booking_service import BookingEngine

logger = get_logger(__name__)


@dataclass
class SweepResult:
    expired_count: int = 0
    promoted_count: int = 0
    # Events whose bookings changed in this pass
    event_ids: list[int] = field(default_factory=list)


async def release_expired_holds(
    holds: HoldLifecycleManager,
    waitlist: WaitlistManager,
    event: EventRef,
    now: datetime,
) -> tuple[list[Booking], list[Booking]]:
    """Expire every lapsed hold of one event, then promote once."""
    expired = [await holds.expire(b) for b in await holds.expired_holds(event.id, now)]
    promoted = await waitlist.promote(event) if expired else []
    return expired, promoted


class ExpirySweeper:
    """Background task calling BookingEngine.sweep_expired_holds periodically."""

    def __init__(self, engine: "BookingEngine", interval: float = 60.0):
        self.engine = engine
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def process_once(self) -> SweepResult:
        result = await self.engine.sweep_expired_holds()
        await invalidate_availability(result.event_ids)
        return result

    async def run_forever(self) -> None:
        self._running = True
        while self._running:
            try:
                await self.process_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                # A failed pass must not kill the loop; the next one retries
                logger.exception("sweep_failed")
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever())
            logger.info("sweeper_started", interval_seconds=self.interval)

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("sweeper_stopped")
