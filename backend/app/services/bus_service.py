"""
Bus CRUD for administrators.
"""

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFound, ResourceInUse
from app.core.logging import get_logger
from app.models.bus import Bus
from app.models.schedule import Schedule
from app.schemas.bus import BusCreate, BusUpdate
from app.schemas.schedule import ScheduleBase
from app.services.schedule_service import ensure_future_departure

logger = get_logger(__name__)


async def create_bus(db: AsyncSession, bus_data: BusCreate) -> Bus:
    bus = Bus(**bus_data.model_dump())
    db.add(bus)
    await db.flush()
    await db.refresh(bus)

    logger.info("bus_created", bus_id=bus.id, operator=bus.operator, seats=bus.total_seats)
    return bus


async def list_buses(db: AsyncSession) -> list[Bus]:
    result = await db.execute(select(Bus).order_by(Bus.created_at.desc(), Bus.id.desc()))
    return list(result.scalars().all())


async def get_bus(db: AsyncSession, bus_id: int) -> Bus:
    bus = await db.get(Bus, bus_id)
    if not bus:
        raise NotFound(f"Bus {bus_id} not found")
    return bus


async def update_bus(db: AsyncSession, bus_id: int, bus_data: BusUpdate) -> Bus:
    """Partial update: only fields present in the request change."""
    bus = await get_bus(db, bus_id)
    for field, value in bus_data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(bus, field, value)
    await db.flush()
    await db.refresh(bus)

    logger.info("bus_updated", bus_id=bus.id)
    return bus


async def delete_bus(db: AsyncSession, bus_id: int) -> None:
    bus = await get_bus(db, bus_id)
    schedule_count = (
        await db.execute(select(func.count()).select_from(Schedule).where(Schedule.bus_id == bus_id))
    ).scalar()
    if schedule_count:
        raise ResourceInUse(
            f"Cannot delete bus. It still has {schedule_count} schedule(s)."
        )
    # schedules is lazy="raise", so bypass the unit of work
    await db.execute(delete(Bus).where(Bus.id == bus_id).execution_options(synchronize_session=False))
    db.expunge(bus)
    logger.info("bus_deleted", bus_id=bus_id)


async def add_schedules_to_bus(db: AsyncSession, bus_id: int, schedules: list[ScheduleBase]) -> list[Schedule]:
    """Create several schedules for one bus in a single transaction."""
    await get_bus(db, bus_id)
    for item in schedules:
        ensure_future_departure(item.departure_time)

    created = [Schedule(bus_id=bus_id, **item.model_dump()) for item in schedules]
    db.add_all(created)
    await db.flush()

    result = await db.execute(
        select(Schedule)
        .where(Schedule.id.in_([schedule.id for schedule in created]))
        .order_by(Schedule.departure_time)
        .execution_options(populate_existing=True)
    )
    logger.info("bus_schedules_added", bus_id=bus_id, count=len(created))
    return list(result.scalars().all())
