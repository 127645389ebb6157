"""
Seat lock strategy factory.
Configures which per-schedule lock the booking service uses.
"""

from typing import Optional

from app.core.config import get_settings
from app.services.interfaces.seat_lock import SeatLockStrategy
from app.services.interfaces.local_seat_lock import LocalSeatLock
from app.services.seat_lock_service import RedisSeatLock

settings = get_settings()


def get_seat_lock_strategy() -> SeatLockStrategy:
    """
    Build the configured strategy.

    SEAT_LOCK_STRATEGY:
    - "local": LocalSeatLock (single process, default)
    - "redis": RedisSeatLock (multiple processes)
    """
    if settings.SEAT_LOCK_STRATEGY == "redis":
        return RedisSeatLock()
    return LocalSeatLock()


# Singleton instance
_strategy: Optional[SeatLockStrategy] = None


def get_seat_lock() -> SeatLockStrategy:
    """Get seat lock strategy singleton."""
    global _strategy
    if _strategy is None:
        _strategy = get_seat_lock_strategy()
    return _strategy
