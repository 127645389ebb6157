"""
Bus administration endpoints. Admin only.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.bus import BusCreate, BusUpdate, BusResponse
from app.schemas.schedule import BusScheduleBatch, ScheduleResponse
from app.services import bus_service
from app.services.cache_service import invalidate_search_cache
from app.core.security import require_admin

router = APIRouter(prefix="/buses", tags=["Buses"], dependencies=[Depends(require_admin)])


@router.post("/", response_model=BusResponse, status_code=status.HTTP_201_CREATED)
async def create_bus(bus_data: BusCreate, db: AsyncSession = Depends(get_db)):
    return await bus_service.create_bus(db, bus_data)


@router.get("/", response_model=list[BusResponse])
async def list_buses(db: AsyncSession = Depends(get_db)):
    return await bus_service.list_buses(db)


@router.get("/{bus_id}", response_model=BusResponse)
async def get_bus(bus_id: int, db: AsyncSession = Depends(get_db)):
    return await bus_service.get_bus(db, bus_id)


@router.put("/{bus_id}", response_model=BusResponse)
async def update_bus(bus_id: int, bus_data: BusUpdate, db: AsyncSession = Depends(get_db)):
    return await bus_service.update_bus(db, bus_id, bus_data)


@router.delete("/{bus_id}")
async def delete_bus(bus_id: int, db: AsyncSession = Depends(get_db)):
    await bus_service.delete_bus(db, bus_id)
    return {"message": "Bus deleted successfully"}


@router.post("/{bus_id}/schedules", response_model=list[ScheduleResponse], status_code=status.HTTP_201_CREATED)
async def add_bus_schedules(bus_id: int, batch: BusScheduleBatch, db: AsyncSession = Depends(get_db)):
    """Add several schedules to one bus."""
    schedules = await bus_service.add_schedules_to_bus(db, bus_id, batch.schedules)
    await invalidate_search_cache()
    return schedules
