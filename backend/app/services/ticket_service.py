"""
Ticket reference (PNR) allocation.

References are a fixed prefix plus random upper-case alphanumerics. The
existence check before insert is best effort; the unique constraint on
`bookings.ticket_reference` is the final authority and the booking service
handles the IntegrityError a lost race produces.
"""

import secrets
import string
from typing import Awaitable, Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import AllocationExhausted
from app.core.logging import get_logger
from app.core.metrics import ticket_reference_collisions
from app.models.booking import Booking

logger = get_logger(__name__)
settings = get_settings()

TICKET_ALPHABET = string.ascii_uppercase + string.digits


def generate_ticket_reference() -> str:
    body = "".join(secrets.choice(TICKET_ALPHABET) for _ in range(settings.TICKET_LENGTH))
    return f"{settings.TICKET_PREFIX}{body}"


async def allocate_unique(
    generate: Callable[[], str],
    exists: Callable[[str], Awaitable[bool]],
    max_attempts: int,
) -> str:
    """
    Draw candidates until one is not taken.
    Raises AllocationExhausted after max_attempts collisions.
    """
    for attempt in range(1, max_attempts + 1):
        candidate = generate()
        if not await exists(candidate):
            return candidate
        ticket_reference_collisions.inc()
        logger.info("ticket_reference_collision", attempt=attempt, max_attempts=max_attempts)

    logger.error("ticket_reference_exhausted", attempts=max_attempts)
    raise AllocationExhausted()


async def ticket_reference_exists(db: AsyncSession, reference: str) -> bool:
    result = await db.execute(select(Booking.id).where(Booking.ticket_reference == reference))
    return result.first() is not None


async def allocate_ticket_reference(
    db: AsyncSession,
    generate: Callable[[], str] = generate_ticket_reference,
    max_attempts: Optional[int] = None,
) -> str:
    async def exists(reference: str) -> bool:
        return await ticket_reference_exists(db, reference)

    return await allocate_unique(
        generate,
        exists,
        max_attempts if max_attempts is not None else settings.TICKET_MAX_ATTEMPTS,
    )
