"""
Bus model. A bus knows its capacity but not its seat layout: seat labels on
bookings are free-form strings.
"""

from sqlalchemy import Column, Integer, String, JSON, CheckConstraint
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin

BUS_TYPES = ("AC", "Non-AC")


class Bus(Base, TimestampMixin):
    __tablename__ = "buses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    operator = Column(String(255), nullable=False)
    bus_type = Column(String(20), nullable=False)
    total_seats = Column(Integer, nullable=False)
    amenities = Column(JSON, nullable=False, default=list)

    schedules = relationship("Schedule", back_populates="bus", lazy="raise")

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="check_bus_total_seats_positive"),
        CheckConstraint("bus_type IN ('AC', 'Non-AC')", name="check_bus_type"),
    )

    def __repr__(self) -> str:
        return f"<Bus(id={self.id}, operator={self.operator}, seats={self.total_seats})>"
