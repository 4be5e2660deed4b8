"""
Infrastructure layer - storage implementations behind the service interfaces.
Keeps business logic clean from implementation details.
"""

from .memory_store import InMemoryBookingStore, InMemoryEventCatalog
from .sql_store import SqlBookingStore, SqlEventCatalog

__all__ = ['InMemoryBookingStore', 'InMemoryEventCatalog', 'SqlBookingStore', 'SqlEventCatalog']
