"""
Public schedule search with Redis caching.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.schedule import ScheduleResponse
from app.services.cache_service import get_cached_search, set_cached_search
from app.services.schedule_service import search_schedules
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Search"])


@router.get("/search", response_model=list[ScheduleResponse])
async def search(
    source: str = Query(..., min_length=1),
    destination: str = Query(..., min_length=1),
    travel_date: date = Query(..., alias="date"),
    db: AsyncSession = Depends(get_db),
):
    """
    Find schedules by route and departure day.
    Results are cached; cache is invalidated on any schedule write.
    """
    cached = await get_cached_search(source, destination, travel_date)
    if cached is not None:
        logger.info("schedule_search_cache_hit", source=source, destination=destination)
        return [ScheduleResponse(**item) for item in cached]

    schedules = await search_schedules(db, source, destination, travel_date)
    response = [ScheduleResponse.model_validate(s) for s in schedules]
    await set_cached_search(source, destination, travel_date, [r.model_dump(mode="json") for r in response])
    return response
