"""Initial schema: users, buses, schedules, bookings with indexes and constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'user'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('user', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "buses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("operator", sa.String(255), nullable=False),
        sa.Column("bus_type", sa.String(20), nullable=False),
        sa.Column("total_seats", sa.Integer(), nullable=False),
        sa.Column("amenities", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("total_seats > 0", name="check_bus_total_seats_positive"),
        sa.CheckConstraint("bus_type IN ('AC', 'Non-AC')", name="check_bus_type"),
    )
    op.create_index("ix_buses_id", "buses", ["id"])

    op.create_table(
        "schedules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("bus_id", sa.Integer(), sa.ForeignKey("buses.id"), nullable=False),
        sa.Column("source", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("departure_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("fare", sa.Numeric(10, 2), nullable=False),
        # Bumped by every booking insert and schedule edit (compare-and-swap)
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("fare >= 0", name="check_schedule_fare_non_negative"),
    )
    op.create_index("ix_schedules_id", "schedules", ["id"])
    op.create_index("ix_schedules_bus_id", "schedules", ["bus_id"])
    op.create_index("ix_schedules_departure_time", "schedules", ["departure_time"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("schedule_id", sa.Integer(), sa.ForeignKey("schedules.id"), nullable=False),
        sa.Column("bus_id", sa.Integer(), sa.ForeignKey("buses.id"), nullable=False),
        sa.Column("selected_seats", sa.JSON(), nullable=False),
        sa.Column("total_fare", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("ticket_reference", sa.String(32), nullable=False),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("total_fare >= 0", name="check_booking_total_fare_non_negative"),
        sa.CheckConstraint("status IN ('pending', 'confirmed', 'cancelled')", name="check_booking_status"),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'succeeded', 'failed', 'cancelled')",
            name="check_booking_payment_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    # Backstop for the ticket reference allocator
    op.create_index("ix_bookings_ticket_reference", "bookings", ["ticket_reference"], unique=True)
    # Serves the held-seat query: WHERE schedule_id = ? AND status IN ('pending', 'confirmed')
    op.create_index("ix_bookings_schedule_status", "bookings", ["schedule_id", "status"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("schedules")
    op.drop_table("buses")
    op.drop_table("users")
