#!/usr/bin/env python3
"""
Admin Seed Script

Creates the first admin account. Run after `alembic upgrade head`:

    cd backend
    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=... python -m scripts.create_admin
"""

import asyncio
import os

from app.core.logging import get_logger, setup_logging
from app.db.session import AsyncSessionLocal, engine
from app.services.user_service import ensure_admin

logger = get_logger("create_admin")


async def main() -> None:
    setup_logging()
    email = os.environ.get("ADMIN_EMAIL", "admin@example.com")
    password = os.environ.get("ADMIN_PASSWORD", "admin123")
    name = os.environ.get("ADMIN_NAME", "Admin User")

    async with AsyncSessionLocal() as session:
        user, created = await ensure_admin(session, name, email, password)
        await session.commit()

    if created:
        logger.info("admin_seeded", user_id=user.id, email=email)
    else:
        logger.info("admin_exists", user_id=user.id, email=email)
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
