"""
User administration: listing accounts and removing them.
"""

from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFound, ResourceInUse, ValidationError
from app.core.logging import get_logger
from app.core.security import ADMIN_ROLE, hash_password
from app.models.booking import Booking
from app.models.user import User

logger = get_logger(__name__)

ROLES = ("user", ADMIN_ROLE)


async def list_users(db: AsyncSession, role: Optional[str] = None) -> list[User]:
    """All users, optionally filtered by role. Unknown roles are ignored."""
    query = select(User).order_by(User.id)
    if role in ROLES:
        query = query.where(User.role == role)
    result = await db.execute(query)
    return list(result.scalars().all())


async def _count(db: AsyncSession, query) -> int:
    return (await db.execute(query)).scalar()


async def delete_user(db: AsyncSession, user_id: int) -> None:
    """
    Remove an account. The last admin cannot be removed, and neither can a
    user whose bookings are still on record.
    """
    user = await db.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    if user.role == ADMIN_ROLE:
        admins = await _count(db, select(func.count()).select_from(User).where(User.role == ADMIN_ROLE))
        if admins <= 1:
            raise ValidationError("Cannot delete the last admin user")

    bookings = await _count(db, select(func.count()).select_from(Booking).where(Booking.user_id == user_id))
    if bookings:
        raise ResourceInUse(f"Cannot delete user. They have {bookings} booking(s) on record.")

    await db.execute(delete(User).where(User.id == user_id).execution_options(synchronize_session=False))
    db.expunge(user)
    logger.info("user_deleted", user_id=user_id, role=user.role)


async def ensure_admin(db: AsyncSession, name: str, email: str, password: str) -> tuple[User, bool]:
    """Create an admin account unless the email is already registered. Returns (user, created)."""
    result = await db.execute(select(User).where(User.email == email))
    existing = result.scalar_one_or_none()
    if existing:
        return existing, False

    user = User(name=name, email=email, hashed_password=hash_password(password), role=ADMIN_ROLE)
    db.add(user)
    await db.flush()
    logger.info("admin_created", user_id=user.id, email=email)
    return user, True
