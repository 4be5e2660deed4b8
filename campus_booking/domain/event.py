"""
Read-only view of an event as the booking engine needs it.

Event metadata is owned by the event catalog; the engine only looks at
capacity policy and the department used for eligibility checks.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class EventRef:
    id: int
    base_capacity: int
    allow_overbooking: bool = False
    department: str = ""
    title: str = ""
