"""
Schedule model: one trip of one bus.

Key design decisions:
- `version` is a per-schedule counter. Every booking insert and every schedule
  edit bumps it with a compare-and-swap, so two writers that read the same
  schedule state cannot both commit.
- Index on `departure_time` for the date-range search.
"""

from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class Schedule(Base, TimestampMixin):
    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True, index=True)
    bus_id = Column(Integer, ForeignKey("buses.id"), nullable=False, index=True)
    source = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    departure_time = Column(DateTime(timezone=True), nullable=False)
    fare = Column(Numeric(10, 2), nullable=False)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    bus = relationship("Bus", back_populates="schedules", lazy="selectin")
    bookings = relationship("Booking", back_populates="schedule", lazy="raise")

    __table_args__ = (
        CheckConstraint("fare >= 0", name="check_schedule_fare_non_negative"),
        Index("ix_schedules_departure_time", "departure_time"),
    )

    def __repr__(self) -> str:
        return f"<Schedule(id={self.id}, {self.source}->{self.destination}, at={self.departure_time})>"
