"""
In-process seat lock - one asyncio.Lock per schedule.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from app.services.interfaces.seat_lock import SeatLockStrategy


class LocalSeatLock(SeatLockStrategy):
    """
    Per-schedule asyncio locks, created on demand and dropped once nobody
    holds or waits for them.

    Use when:
    - A single API process serves all booking traffic
    - Redis is unavailable (fallback for RedisSeatLock)
    """

    def __init__(self):
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, schedule_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(schedule_id, asyncio.Lock())
        self._users[schedule_id] = self._users.get(schedule_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[schedule_id] -= 1
            if self._users[schedule_id] == 0:
                del self._users[schedule_id]
                del self._locks[schedule_id]

    def is_held(self, schedule_id: int) -> bool:
        lock = self._locks.get(schedule_id)
        return lock is not None and lock.locked()
