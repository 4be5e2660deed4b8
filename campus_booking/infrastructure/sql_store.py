"""
PostgreSQL booking store and event catalog.

CONCURRENCY: optimistic locking on events.version
=================================================

  1. On entering a transaction, read the version of each event in scope
  2. Run the engine operation (reads and writes on bookings)
  3. If it wrote anything:
       UPDATE events SET version = version + 1
       WHERE id = :event_id AND version = :read_version
     for each event, in ascending id order
  4. If any UPDATE matched no row, another transaction committed a change
     to that event after we read it -> rollback, raise StaleSnapshotError
     and let the engine retry against fresh state

  A concurrent writer on the same event blocks on the row lock taken by
  the first UPDATE and then sees the bumped version, so two "last seat"
  bookings cannot both commit. Read-only transactions skip the bump and
  never conflict. The partial unique index on (user_id, event_id) is the
  final safety net for duplicate bookings.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from campus_booking.core.exceptions import DuplicateBookingError, EventNotFoundError
from campus_booking.core.logging import get_logger
from campus_booking.domain.booking import Booking, BookingStatus
from campus_booking.domain.event import EventRef
from campus_booking.models.booking import Booking as BookingRow
from campus_booking.models.event import Event as EventRow
from campus_booking.services.interfaces.booking_store import (
    BookingStore,
    BookingTransaction,
    StaleSnapshotError,
)
from campus_booking.services.interfaces.event_catalog import EventCatalog

logger = get_logger(__name__)


def _to_domain(row: BookingRow) -> Booking:
    return Booking(
        id=row.id,
        event_id=row.event_id,
        user_id=row.user_id,
        status=BookingStatus(row.status),
        created_at=row.created_at,
        hold_expires_at=row.hold_expires_at,
        waitlist_position=row.waitlist_position,
        updated_at=row.updated_at,
        cancelled_at=row.cancelled_at,
    )


def _row_values(booking: Booking) -> dict:
    return {
        "status": booking.status.value,
        "hold_expires_at": booking.hold_expires_at,
        "waitlist_position": booking.waitlist_position,
        "updated_at": booking.updated_at or booking.created_at,
        "cancelled_at": booking.cancelled_at,
    }


class _SqlTransaction(BookingTransaction):
    def __init__(self, session: AsyncSession, event_ids: frozenset[int]):
        self.session = session
        self.event_ids = event_ids
        self.dirty = False

    async def get(self, booking_id: int) -> Optional[Booking]:
        result = await self.session.execute(
            select(BookingRow)
            .where(BookingRow.id == booking_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _to_domain(row) if row else None

    async def list_for_event(self, event_id: int) -> list[Booking]:
        result = await self.session.execute(
            select(BookingRow)
            .where(
                BookingRow.event_id == event_id,
                BookingRow.status != BookingStatus.CANCELLED.value,
            )
            .order_by(BookingRow.created_at.asc(), BookingRow.id.asc())
            .execution_options(populate_existing=True)
        )
        return [_to_domain(row) for row in result.scalars().all()]

    async def find_active(self, user_id: int, event_id: int) -> Optional[Booking]:
        result = await self.session.execute(
            select(BookingRow).where(
                BookingRow.user_id == user_id,
                BookingRow.event_id == event_id,
                BookingRow.status != BookingStatus.CANCELLED.value,
            )
        )
        row = result.scalars().first()
        return _to_domain(row) if row else None

    async def add(self, booking: Booking) -> Booking:
        row = BookingRow(
            event_id=booking.event_id,
            user_id=booking.user_id,
            created_at=booking.created_at,
            **_row_values(booking),
        )
        self.session.add(row)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise DuplicateBookingError(booking.user_id, booking.event_id) from exc
        self.dirty = True
        booking.id = row.id
        return booking

    async def save(self, booking: Booking) -> Booking:
        await self.session.execute(
            update(BookingRow)
            .where(BookingRow.id == booking.id)
            .values(**_row_values(booking))
        )
        self.dirty = True
        return booking


class SqlBookingStore(BookingStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def transaction(self, *event_ids: int) -> AsyncIterator[BookingTransaction]:
        scope = frozenset(event_ids)
        async with self.session_factory() as session:
            try:
                versions: dict[int, int] = {}
                for event_id in sorted(scope):
                    result = await session.execute(select(EventRow.version).where(EventRow.id == event_id))
                    version = result.scalar_one_or_none()
                    if version is None:
                        raise EventNotFoundError(event_id)
                    versions[event_id] = version

                tx = _SqlTransaction(session, scope)
                yield tx

                if tx.dirty:
                    for event_id, version in versions.items():
                        bumped = await session.execute(
                            update(EventRow)
                            .where(EventRow.id == event_id, EventRow.version == version)
                            .values(version=EventRow.version + 1)
                        )
                        if bumped.rowcount == 0:
                            logger.debug("event_version_conflict", event_id=event_id, read_version=version)
                            raise StaleSnapshotError(event_id)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def get_booking(self, booking_id: int) -> Optional[Booking]:
        async with self.session_factory() as session:
            row = await session.get(BookingRow, booking_id)
            return _to_domain(row) if row else None

    async def list_for_user(self, user_id: int) -> list[Booking]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(BookingRow)
                .where(
                    BookingRow.user_id == user_id,
                    BookingRow.status != BookingStatus.CANCELLED.value,
                )
                .order_by(BookingRow.created_at.desc(), BookingRow.id.desc())
            )
            return [_to_domain(row) for row in result.scalars().all()]

    async def events_with_expired_holds(self, now: datetime) -> list[int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(BookingRow.event_id)
                .where(
                    BookingRow.status == BookingStatus.HOLD.value,
                    BookingRow.hold_expires_at <= now,
                )
                .distinct()
                .order_by(BookingRow.event_id)
            )
            return list(result.scalars().all())


class SqlEventCatalog(EventCatalog):
    """Reads the events table; writes belong to the event service."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_event(self, event_id: int) -> Optional[EventRef]:
        async with self.session_factory() as session:
            row = await session.get(EventRow, event_id)
            if row is None:
                return None
            return EventRef(
                id=row.id,
                base_capacity=row.base_capacity,
                allow_overbooking=row.allow_overbooking,
                department=row.department,
                title=row.title,
            )
