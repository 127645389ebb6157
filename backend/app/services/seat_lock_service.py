"""
Distributed seat lock for multi-instance deployments.
Implements SeatLockStrategy using a Redis lock per schedule.

Fail-open behaviour:
  If Redis is disabled or unreachable the strategy falls back to a local
  asyncio lock and raises the seat_lock_fail_open gauge. Across instances the
  database remains authoritative: the schedule version compare-and-swap in
  the booking service rejects the second of two racing writers, which then
  retries and sees the winner's seats.

  A lock that cannot be acquired within SEAT_LOCK_BLOCKING_TIMEOUT while
  Redis is healthy surfaces as ScheduleContention (503, retryable).
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from redis.asyncio.lock import Lock
from redis.exceptions import LockError, RedisError

from app.core.config import get_settings
from app.core.exceptions import ScheduleContention
from app.core.logging import get_logger
from app.core.metrics import redis_connection_errors, seat_lock_fail_open
from app.infrastructure.redis_client import get_redis
from app.services.interfaces.local_seat_lock import LocalSeatLock
from app.services.interfaces.seat_lock import SeatLockStrategy

logger = get_logger(__name__)
settings = get_settings()


def seat_lock_key(schedule_id: int) -> str:
    return f"seat-lock:schedule:{schedule_id}"


class RedisSeatLock(SeatLockStrategy):
    """
    Redis-based per-schedule lock.

    Use when:
    - More than one API process books seats for the same schedules
    - Redis is already deployed for the search cache
    """

    def __init__(self, fallback: Optional[LocalSeatLock] = None):
        self.fallback = fallback or LocalSeatLock()

    @asynccontextmanager
    async def hold(self, schedule_id: int) -> AsyncIterator[None]:
        lock = await self._acquire(schedule_id)
        if lock is None:
            async with self.fallback.hold(schedule_id):
                yield
            return

        try:
            yield
        finally:
            await self._release(lock, schedule_id)

    async def _acquire(self, schedule_id: int) -> Optional[Lock]:
        client = await get_redis()
        if client is None:
            self._fail_open(schedule_id, reason="redis_unavailable")
            return None

        lock = client.lock(
            seat_lock_key(schedule_id),
            timeout=settings.SEAT_LOCK_TIMEOUT,
            blocking_timeout=settings.SEAT_LOCK_BLOCKING_TIMEOUT,
        )
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            redis_connection_errors.inc()
            self._fail_open(schedule_id, reason="redis_error", error=str(e))
            return None

        if not acquired:
            logger.warning(
                "seat_lock_timeout",
                schedule_id=schedule_id,
                blocking_timeout=settings.SEAT_LOCK_BLOCKING_TIMEOUT,
            )
            raise ScheduleContention()

        seat_lock_fail_open.set(0)
        return lock

    async def _release(self, lock: Lock, schedule_id: int) -> None:
        try:
            await lock.release()
        except LockError:
            # Expired under us; the version check still guarded the insert
            logger.warning("seat_lock_expired_before_release", schedule_id=schedule_id)
        except RedisError as e:
            redis_connection_errors.inc()
            logger.error("seat_lock_release_failed", schedule_id=schedule_id, error=str(e))

    def _fail_open(self, schedule_id: int, **context) -> None:
        seat_lock_fail_open.set(1)
        logger.warning("seat_lock_fail_open", schedule_id=schedule_id, **context)
