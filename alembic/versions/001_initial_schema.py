"""Initial schema: events and bookings with indexes and constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_ROWS = sa.text("status <> 'cancelled'")


def upgrade() -> None:
    events = op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("department", sa.String(255), nullable=False),
        sa.Column("base_capacity", sa.Integer(), nullable=False),
        sa.Column("allow_overbooking", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("base_capacity >= 1", name="check_base_capacity_positive"),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_department", "events", ["department"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("hold_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("waitlist_position", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('hold', 'confirmed', 'waitlisted', 'cancelled')",
            name="check_booking_status",
        ),
        sa.CheckConstraint("(status = 'hold') = (hold_expires_at IS NOT NULL)", name="check_hold_expiry_iff_hold"),
        sa.CheckConstraint(
            "(status = 'waitlisted') = (waitlist_position IS NOT NULL)",
            name="check_position_iff_waitlisted",
        ),
        sa.CheckConstraint(
            "waitlist_position IS NULL OR waitlist_position >= 1",
            name="check_waitlist_position_positive",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_event_id", "bookings", ["event_id"])
    # Occupancy and waitlist queries always filter one event by status
    op.create_index("ix_bookings_event_status", "bookings", ["event_id", "status"])
    # One active booking per student per event; cancelled rows are history
    op.create_index(
        "uq_active_user_event_booking",
        "bookings",
        ["user_id", "event_id"],
        unique=True,
        postgresql_where=ACTIVE_ROWS,
    )

    op.bulk_insert(
        events,
        [
            {"id": 1, "title": "Introduction to Algorithms", "department": "Computer Science", "base_capacity": 40, "allow_overbooking": False},
            {"id": 2, "title": "Data Structures Lab", "department": "Computer Science", "base_capacity": 25, "allow_overbooking": False},
            {"id": 3, "title": "Office Hours - Dr. Smith", "department": "Computer Science", "base_capacity": 5, "allow_overbooking": False},
            {"id": 4, "title": "Linear Algebra", "department": "Mathematics", "base_capacity": 35, "allow_overbooking": False},
            {"id": 5, "title": "Calculus Problem Session", "department": "Mathematics", "base_capacity": 20, "allow_overbooking": True},
            {"id": 6, "title": "Machine Learning Seminar", "department": "Computer Science", "base_capacity": 50, "allow_overbooking": True},
        ],
    )
    op.execute("SELECT setval('events_id_seq', (SELECT MAX(id) FROM events))")


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("events")
