"""
Event model: the catalog row the booking engine reads capacity policy from.

Key design decisions:
- Title/description/schedule fields belong to the event service; only the
  columns the engine needs are modelled here
- `version` is the optimistic concurrency token for the event's booking set:
  every transaction that changes bookings of this event bumps it
"""

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String, Index
from sqlalchemy.orm import relationship

from campus_booking.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    department = Column(String(255), nullable=False)
    base_capacity = Column(Integer, nullable=False)
    allow_overbooking = Column(Boolean, nullable=False, default=False)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    bookings = relationship(
        "Booking",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("base_capacity >= 1", name="check_base_capacity_positive"),
        Index("ix_events_department", "department"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, capacity={self.base_capacity}, overbooking={self.allow_overbooking})>"
