"""
Redis client shared by the search cache and the distributed seat lock.
Separated from business logic for clean architecture.

A failed connect is remembered for REDIS_RETRY_BACKOFF_SECONDS. Until then
callers get None straight away and take their no-Redis path instead of
waiting on another connect timeout.
"""

import asyncio
import time
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()


class RedisClient:
    """Process-wide async Redis client with connection pooling."""

    _instance: Optional[redis.Redis] = None
    _lock: Optional[asyncio.Lock] = None
    _retry_at: float = 0.0  # monotonic clock

    @classmethod
    def _get_lock(cls) -> asyncio.Lock:
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    def _backing_off(cls) -> bool:
        return time.monotonic() < cls._retry_at

    @classmethod
    async def _connect(cls) -> Optional[redis.Redis]:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            redis_connection_errors.inc()
            cls._retry_at = time.monotonic() + settings.REDIS_RETRY_BACKOFF_SECONDS
            logger.error(
                "redis_connection_failed",
                url=settings.REDIS_URL,
                error=str(e),
                retry_in_seconds=settings.REDIS_RETRY_BACKOFF_SECONDS,
            )
            await client.aclose()
            return None

        logger.info("redis_connected", url=settings.REDIS_URL)
        return client

    @classmethod
    async def get_client(cls) -> Optional[redis.Redis]:
        """Get or create the client. Returns None if Redis is disabled or unreachable."""
        if not settings.REDIS_ENABLED:
            return None
        if cls._instance is not None:
            return cls._instance
        if cls._backing_off():
            return None

        # One connect attempt at a time; late arrivals see its outcome
        async with cls._get_lock():
            if cls._instance is None and not cls._backing_off():
                cls._instance = await cls._connect()
        return cls._instance

    @classmethod
    async def close(cls) -> None:
        if cls._instance is not None:
            await cls._instance.aclose()
            cls._instance = None
        cls._lock = None
        cls._retry_at = 0.0


async def get_redis() -> Optional[redis.Redis]:
    return await RedisClient.get_client()


async def close_redis() -> None:
    await RedisClient.close()
