"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .seat_lock import SeatLockStrategy
from .local_seat_lock import LocalSeatLock
from .payment_gateway import PaymentGateway, PaymentIntent

__all__ = ['SeatLockStrategy', 'LocalSeatLock', 'PaymentGateway', 'PaymentIntent']
