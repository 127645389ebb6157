"""
Pydantic schemas for booking-related request/response validation.

BookingCreate deliberately has no fare field: any fare sent by the client is
ignored and the total is computed from the schedule.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.schemas.bus import BusSummary
from app.schemas.schedule import ScheduleSummary
from app.schemas.user import UserSummary


class BookingCreate(BaseModel):
    schedule_id: int
    selected_seats: list[str]


class BookingConfirm(BaseModel):
    booking_id: int
    payment_intent_id: str = Field(..., min_length=1, max_length=255)


class BookingResponse(BaseModel):
    id: int
    user_id: int
    schedule_id: int
    bus_id: int
    selected_seats: list[str]
    total_fare: float
    status: str
    ticket_reference: str
    payment_reference: Optional[str]
    payment_status: str
    payment_date: Optional[datetime]
    created_at: datetime
    user: Optional[UserSummary] = None
    schedule: Optional[ScheduleSummary] = None
    bus: Optional[BusSummary] = None

    model_config = {"from_attributes": True}


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: str
