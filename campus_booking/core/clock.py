"""
Time source for the booking engine.

The engine takes any zero-argument callable returning an aware UTC datetime,
so tests can drive hold expiry without sleeping.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
