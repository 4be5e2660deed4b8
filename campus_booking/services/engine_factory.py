"""
Booking engine factory.
Configures which storage backend the engine runs on.
"""

from datetime import timedelta
from typing import Optional

from campus_booking.core.config import Settings, get_settings
from campus_booking.core.logging import get_logger
from campus_booking.domain.event import EventRef
from campus_booking.infrastructure.memory_store import InMemoryBookingStore, InMemoryEventCatalog
from campus_booking.services.booking_service import BookingEngine

logger = get_logger(__name__)

# Demo catalog for the memory backend, mirroring the seeded campus schedule
DEMO_EVENTS = [
    EventRef(id=1, title="Introduction to Algorithms", department="Computer Science", base_capacity=40),
    EventRef(id=2, title="Data Structures Lab", department="Computer Science", base_capacity=25),
    EventRef(id=3, title="Office Hours - Dr. Smith", department="Computer Science", base_capacity=5),
    EventRef(id=4, title="Linear Algebra", department="Mathematics", base_capacity=35),
    EventRef(id=5, title="Calculus Problem Session", department="Mathematics", base_capacity=20, allow_overbooking=True),
    EventRef(id=6, title="Machine Learning Seminar", department="Computer Science", base_capacity=50, allow_overbooking=True),
]


def build_engine(settings: Optional[Settings] = None) -> BookingEngine:
    """
    Build the engine for the configured STORAGE_BACKEND.

    - memory: single-process stores, optionally seeded with DEMO_EVENTS
    - database: PostgreSQL via SQLAlchemy async sessions
    """
    settings = settings or get_settings()
    backend = settings.STORAGE_BACKEND

    if backend == "database":
        from campus_booking.db.session import create_engine, create_session_factory
        from campus_booking.infrastructure.sql_store import SqlBookingStore, SqlEventCatalog

        session_factory = create_session_factory(create_engine(settings.DATABASE_URL))
        store = SqlBookingStore(session_factory)
        catalog = SqlEventCatalog(session_factory)
    elif backend == "memory":
        store = InMemoryBookingStore(lock_timeout=settings.EVENT_LOCK_TIMEOUT_SECONDS)
        catalog = InMemoryEventCatalog(DEMO_EVENTS if settings.SEED_DEMO_EVENTS else [])
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND: {backend!r}")

    logger.info("booking_engine_configured", backend=backend)
    return BookingEngine(
        store=store,
        catalog=catalog,
        hold_ttl=timedelta(minutes=settings.HOLD_TTL_MINUTES),
        max_retry_attempts=settings.BOOKING_MAX_RETRY_ATTEMPTS,
    )
