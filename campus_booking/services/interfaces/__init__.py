"""
Service interfaces for dependency inversion.
Allows swapping storage implementations without changing business logic.
"""

from .booking_store import BookingStore, BookingTransaction, StaleSnapshotError
from .event_catalog import EventCatalog

__all__ = ['BookingStore', 'BookingTransaction', 'StaleSnapshotError', 'EventCatalog']
