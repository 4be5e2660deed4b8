"""
Booking model: persisted form of campus_booking.domain.booking.Booking.

Key design decisions:
- Partial unique index on (user_id, event_id) for non-cancelled rows: one
  active booking per user per event, while cancelled history is kept and
  the user can book again later
- hold_expires_at / waitlist_position consistency is enforced by CHECK
  constraints, not just by the engine
- created_at is written by the engine (not the DB clock) because it is the
  waitlist FIFO key; id breaks ties in insertion order
- user_id is not a foreign key: identities come from the auth gateway
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from campus_booking.db.base import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    status = Column(String(20), nullable=False)
    hold_expires_at = Column(DateTime(timezone=True), nullable=True)
    waitlist_position = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    event = relationship("Event", back_populates="bookings")

    __table_args__ = (
        Index(
            "uq_active_user_event_booking",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        Index("ix_bookings_event_status", "event_id", "status"),
        CheckConstraint(
            "status IN ('hold', 'confirmed', 'waitlisted', 'cancelled')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "(status = 'hold') = (hold_expires_at IS NOT NULL)",
            name="check_hold_expiry_iff_hold",
        ),
        CheckConstraint(
            "(status = 'waitlisted') = (waitlist_position IS NOT NULL)",
            name="check_position_iff_waitlisted",
        ),
        CheckConstraint(
            "waitlist_position IS NULL OR waitlist_position >= 1",
            name="check_waitlist_position_positive",
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
