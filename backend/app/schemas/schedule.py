"""
Pydantic schemas for schedule-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from app.schemas.bus import BusResponse


class ScheduleBase(BaseModel):
    source: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    departure_time: datetime
    fare: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)


class ScheduleCreate(ScheduleBase):
    bus_id: int


class ScheduleUpdate(BaseModel):
    source: Optional[str] = Field(None, min_length=1, max_length=255)
    destination: Optional[str] = Field(None, min_length=1, max_length=255)
    departure_time: Optional[datetime] = None
    fare: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)


class BusScheduleBatch(BaseModel):
    schedules: list[ScheduleBase] = Field(..., min_length=1)


class ScheduleResponse(BaseModel):
    id: int
    bus_id: int
    source: str
    destination: str
    departure_time: datetime
    fare: float
    bus: Optional[BusResponse] = None

    model_config = {"from_attributes": True}


class ScheduleSummary(BaseModel):
    id: int
    source: str
    destination: str
    departure_time: datetime
    fare: float

    model_config = {"from_attributes": True}


class ScheduleDetailResponse(BaseModel):
    schedule: ScheduleResponse
    booked_seats: list[str]
