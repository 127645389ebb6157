"""
Seat lock strategy interface.
Allows swapping the per-schedule mutual exclusion between single-instance
and multi-instance deployments without touching the booking logic.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager


class SeatLockStrategy(ABC):
    """
    Serialises the check-then-insert section of booking creation per schedule.

    Implementations:
    - LocalSeatLock: asyncio.Lock per schedule, one process
    - RedisSeatLock: Redis lock per schedule, any number of processes

    The schedule version compare-and-swap in the booking service stays in
    force under every strategy.
    """

    @abstractmethod
    def hold(self, schedule_id: int) -> AsyncContextManager[None]:
        """
        Hold the lock for one schedule for the duration of the `async with` block.

        Args:
            schedule_id: Schedule whose seats are being reserved
        """
        ...
