"""
Pydantic schemas for bus-related request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

BusType = Literal["AC", "Non-AC"]


class BusCreate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    operator: str = Field(..., min_length=1, max_length=255)
    bus_type: BusType
    total_seats: int = Field(..., gt=0, le=500)
    amenities: list[str] = Field(default_factory=list)


class BusUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    operator: Optional[str] = Field(None, min_length=1, max_length=255)
    bus_type: Optional[BusType] = None
    total_seats: Optional[int] = Field(None, gt=0, le=500)
    amenities: Optional[list[str]] = None


class BusResponse(BaseModel):
    id: int
    name: Optional[str]
    operator: str
    bus_type: str
    total_seats: int
    amenities: list[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class BusSummary(BaseModel):
    id: int
    name: Optional[str] = None
    operator: str
    bus_type: str

    model_config = {"from_attributes": True}
