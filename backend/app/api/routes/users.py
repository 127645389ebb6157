"""
User administration endpoints. Admin only.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.user import UserResponse
from app.services import user_service
from app.core.security import require_admin

router = APIRouter(prefix="/users", tags=["Users"], dependencies=[Depends(require_admin)])


@router.get("/", response_model=list[UserResponse])
async def list_users(
    role: Optional[Literal["user", "admin"]] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.list_users(db, role)


@router.delete("/{user_id}")
async def delete_user(user_id: int, db: AsyncSession = Depends(get_db)):
    await user_service.delete_user(db, user_id)
    return {"message": "User removed successfully"}
