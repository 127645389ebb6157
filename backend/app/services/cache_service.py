"""
Redis caching service for schedule search results.

CACHING STRATEGY
================

What we cache:
  - Search responses (JSON-serialized list of schedules with their bus)
  - Cache key pattern: "schedules:search:source={s}&destination={d}&date={date}"

Invalidation strategy:
  - On schedule create / update / delete and bus schedule batches:
    delete every "schedules:search:*" key
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

What we never cache:
  - Booked seats. The schedule detail endpoint and the booking service read
    held seats from the database on every call.

Every cache failure degrades to a miss; Redis is never required for a
correct answer.
"""

import json
from datetime import date
from typing import Optional

from redis.exceptions import RedisError

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_operation
from app.infrastructure.redis_client import get_redis

logger = get_logger(__name__)
settings = get_settings()

SEARCH_KEY_PREFIX = "schedules:search:"


def _make_search_key(source: str, destination: str, travel_date: date) -> str:
    return (
        f"{SEARCH_KEY_PREFIX}source={source.strip().lower()}"
        f"&destination={destination.strip().lower()}&date={travel_date.isoformat()}"
    )


async def get_cached_search(source: str, destination: str, travel_date: date) -> Optional[list]:
    """Retrieve a cached search response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_search_key(source, destination, travel_date)
    try:
        data = await client.get(key)
    except RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data:
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_search(source: str, destination: str, travel_date: date, data: list) -> None:
    """Cache a search response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_search_key(source, destination, travel_date)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        record_cache_operation("set")
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_search_cache() -> None:
    """
    Invalidate all cached search results.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{SEARCH_KEY_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except RedisError as e:
        return {"status": "error", "error": str(e)}
