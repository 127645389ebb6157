"""
Schedule endpoints. Writes are admin only; the detail view with booked
seats is public and never cached.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.schedule import (
    ScheduleCreate,
    ScheduleUpdate,
    ScheduleResponse,
    ScheduleDetailResponse,
)
from app.services import schedule_service
from app.services.cache_service import invalidate_search_cache
from app.core.security import require_admin

router = APIRouter(prefix="/schedules", tags=["Schedules"])


@router.post(
    "/",
    response_model=ScheduleResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_schedule(schedule_data: ScheduleCreate, db: AsyncSession = Depends(get_db)):
    schedule = await schedule_service.create_schedule(db, schedule_data)
    await invalidate_search_cache()
    return schedule


@router.get("/", response_model=list[ScheduleResponse], dependencies=[Depends(require_admin)])
async def list_schedules(db: AsyncSession = Depends(get_db)):
    return await schedule_service.list_schedules(db)


@router.get("/bus/{bus_id}", response_model=list[ScheduleResponse], dependencies=[Depends(require_admin)])
async def list_bus_schedules(bus_id: int, db: AsyncSession = Depends(get_db)):
    return await schedule_service.list_schedules(db, bus_id=bus_id)


@router.get("/{schedule_id}", response_model=ScheduleDetailResponse)
async def get_schedule_detail(schedule_id: int, db: AsyncSession = Depends(get_db)):
    """Schedule with bus details and every seat held by a pending or confirmed booking."""
    schedule, booked_seats = await schedule_service.get_schedule_detail(db, schedule_id)
    return ScheduleDetailResponse(
        schedule=ScheduleResponse.model_validate(schedule),
        booked_seats=booked_seats,
    )


@router.put("/{schedule_id}", response_model=ScheduleResponse, dependencies=[Depends(require_admin)])
async def update_schedule(
    schedule_id: int,
    schedule_data: ScheduleUpdate,
    db: AsyncSession = Depends(get_db),
):
    schedule = await schedule_service.update_schedule(db, schedule_id, schedule_data)
    await invalidate_search_cache()
    return schedule


@router.delete("/{schedule_id}", dependencies=[Depends(require_admin)])
async def delete_schedule(schedule_id: int, db: AsyncSession = Depends(get_db)):
    await schedule_service.delete_schedule(db, schedule_id)
    await invalidate_search_cache()
    return {"message": "Schedule deleted successfully"}
