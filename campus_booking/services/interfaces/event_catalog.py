"""
Event catalog interface: the read side of the external event service.
"""

from abc import ABC, abstractmethod
from typing import Optional

from campus_booking.domain.event import EventRef


class EventCatalog(ABC):

    @abstractmethod
    async def get_event(self, event_id: int) -> Optional[EventRef]:
        """
        Current capacity policy of an event.

        Read on every capacity check; implementations must not cache, since
        capacity and the overbooking flag can change between requests.
        """
        pass
