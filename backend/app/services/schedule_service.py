"""
Schedule service: administration, public detail and search.

Every schedule write goes through a compare-and-swap on `Schedule.version`,
the same counter booking creation bumps. A fare change racing a booking
therefore makes one of them retry instead of pricing a booking from a fare
that no longer exists.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFound, ResourceInUse, ScheduleContention, ValidationError
from app.core.logging import get_logger
from app.models.booking import Booking, BookingStatus
from app.models.bus import Bus
from app.models.schedule import Schedule
from app.schemas.schedule import ScheduleCreate, ScheduleUpdate
from app.services.seat_service import get_booked_seats

logger = get_logger(__name__)

# Fields that change what a booking costs or when it travels
PRICING_FIELDS = {"fare", "departure_time"}


def ensure_future_departure(departure_time: datetime) -> None:
    if departure_time.tzinfo is None:
        departure_time = departure_time.replace(tzinfo=timezone.utc)
    if departure_time <= datetime.now(timezone.utc):
        raise ValidationError("Departure time must be in the future")


async def get_schedule(db: AsyncSession, schedule_id: int) -> Schedule:
    """Get a single schedule with its bus."""
    result = await db.execute(
        select(Schedule)
        .where(Schedule.id == schedule_id)
        .execution_options(populate_existing=True)
    )
    schedule = result.scalar_one_or_none()
    if not schedule:
        raise NotFound(f"Schedule {schedule_id} not found")
    return schedule


async def create_schedule(db: AsyncSession, schedule_data: ScheduleCreate) -> Schedule:
    if not await db.get(Bus, schedule_data.bus_id):
        raise NotFound(f"Bus {schedule_data.bus_id} not found")
    ensure_future_departure(schedule_data.departure_time)

    schedule = Schedule(**schedule_data.model_dump())
    db.add(schedule)
    await db.flush()

    logger.info(
        "schedule_created",
        schedule_id=schedule.id,
        bus_id=schedule.bus_id,
        route=f"{schedule.source}->{schedule.destination}",
        fare=str(schedule.fare),
    )
    return await get_schedule(db, schedule.id)


async def list_schedules(db: AsyncSession, bus_id: Optional[int] = None) -> list[Schedule]:
    query = select(Schedule)
    if bus_id is not None:
        query = query.where(Schedule.bus_id == bus_id)
    result = await db.execute(query.order_by(Schedule.departure_time.asc()))
    return list(result.scalars().all())


async def get_schedule_detail(db: AsyncSession, schedule_id: int) -> tuple[Schedule, list[str]]:
    """Schedule plus every seat currently held by a pending or confirmed booking."""
    schedule = await get_schedule(db, schedule_id)
    booked_seats = await get_booked_seats(db, schedule_id)
    return schedule, booked_seats


async def _count_bookings(db: AsyncSession, schedule_id: int, active_only: bool) -> int:
    query = select(func.count()).select_from(Booking).where(Booking.schedule_id == schedule_id)
    if active_only:
        query = query.where(Booking.status.in_(BookingStatus.ACTIVE))
    return (await db.execute(query)).scalar()


async def update_schedule(db: AsyncSession, schedule_id: int, schedule_data: ScheduleUpdate) -> Schedule:
    """
    Partial update. Fare and departure time are frozen once any active
    booking exists on the schedule.
    """
    schedule = await get_schedule(db, schedule_id)
    changes = schedule_data.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        return schedule

    if "departure_time" in changes:
        ensure_future_departure(changes["departure_time"])

    if PRICING_FIELDS & changes.keys() and await _count_bookings(db, schedule_id, active_only=True):
        raise ResourceInUse(
            "Fare and departure time cannot change while the schedule has active bookings"
        )

    result = await db.execute(
        update(Schedule)
        .where(Schedule.id == schedule_id, Schedule.version == schedule.version)
        .values(**changes, version=Schedule.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.info("schedule_update_conflict", schedule_id=schedule_id)
        raise ScheduleContention()

    logger.info("schedule_updated", schedule_id=schedule_id, fields=sorted(changes))
    return await get_schedule(db, schedule_id)


async def delete_schedule(db: AsyncSession, schedule_id: int) -> None:
    """Delete a schedule that has never been booked."""
    schedule = await get_schedule(db, schedule_id)
    if await _count_bookings(db, schedule_id, active_only=False):
        raise ResourceInUse("Cannot delete schedule. There are existing bookings for this schedule.")

    result = await db.execute(
        delete(Schedule)
        .where(Schedule.id == schedule_id, Schedule.version == schedule.version)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ScheduleContention()
    db.expunge(schedule)
    logger.info("schedule_deleted", schedule_id=schedule_id)


def _contains(column, term: str):
    escaped = term.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return column.ilike(f"%{escaped}%", escape="\\")


async def search_schedules(
    db: AsyncSession,
    source: str,
    destination: str,
    travel_date: date,
) -> list[Schedule]:
    """
    Case-insensitive substring match on source and destination for trips
    departing on travel_date (UTC day). Falls back to any date when that day
    has no match.
    """
    if not source.strip() or not destination.strip():
        raise ValidationError("Source, destination, and date are required parameters")

    route_filter = (_contains(Schedule.source, source), _contains(Schedule.destination, destination))
    day_start = datetime.combine(travel_date, time.min, tzinfo=timezone.utc)
    day_end = day_start + timedelta(days=1)

    result = await db.execute(
        select(Schedule)
        .where(*route_filter, Schedule.departure_time >= day_start, Schedule.departure_time < day_end)
        .order_by(Schedule.departure_time.asc())
    )
    schedules = list(result.scalars().all())
    if schedules:
        logger.info("schedule_search", source=source, destination=destination, date=str(travel_date), results=len(schedules))
        return schedules

    result = await db.execute(
        select(Schedule).where(*route_filter).order_by(Schedule.departure_time.asc())
    )
    schedules = list(result.scalars().all())
    logger.info(
        "schedule_search_fallback",
        source=source,
        destination=destination,
        date=str(travel_date),
        results=len(schedules),
    )
    return schedules
