"""
Booking model: one reservation of a set of seats on one schedule.

Key design decisions:
- `selected_seats` is a JSON list of seat labels. "No two active bookings on a
  schedule share a seat" spans rows, so it is enforced in the booking service,
  not by an index.
- `ticket_reference` carries a unique constraint; it is the backstop for the
  reference allocator's best-effort existence check.
- Composite index on (schedule_id, status) serves the held-seat query.
- bus_id is copied from the schedule when the booking is created.
"""

from sqlalchemy import Column, Integer, String, DateTime, Numeric, JSON, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    # Bookings in these states hold their seats
    ACTIVE = (PENDING, CONFIRMED)


class PaymentStatus:
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id"), nullable=False)
    bus_id = Column(Integer, ForeignKey("buses.id"), nullable=False)
    selected_seats = Column(JSON, nullable=False)
    total_fare = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING)
    ticket_reference = Column(String(32), nullable=False, unique=True, index=True)

    payment_reference = Column(String(255), nullable=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING)
    payment_date = Column(DateTime(timezone=True), nullable=True)

    # Loaded with the booking for display enrichment
    user = relationship("User", back_populates="bookings", lazy="selectin")
    schedule = relationship("Schedule", back_populates="bookings", lazy="selectin")
    bus = relationship("Bus", lazy="selectin")

    __table_args__ = (
        CheckConstraint("total_fare >= 0", name="check_booking_total_fare_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')", name="check_booking_status"
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'succeeded', 'failed', 'cancelled')",
            name="check_booking_payment_status",
        ),
        Index("ix_bookings_schedule_status", "schedule_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, ref={self.ticket_reference}, schedule={self.schedule_id}, status={self.status})>"
