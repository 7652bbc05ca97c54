# routers/users.py — Current user profile and user lookup
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser, UserSummary, user_summary
from database import get_db_session
from models import User

router = APIRouter(tags=["Users"])

SEARCH_LIMIT = 20


@router.get("/user", response_model=UserSummary)
async def get_me(user: CurrentUser = Depends(get_current_user)):
    """Profile of the authenticated caller"""
    return UserSummary(id=user.id, name=user.name, email=user.email)


@router.get("/users/search", response_model=List[UserSummary])
async def search_users(
    email: str = Query(..., min_length=1),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Case-insensitive e-mail search, excluding the caller"""
    stmt = (
        select(User)
        .where(User.email.icontains(email, autoescape=True), User.id != user.id)
        .order_by(User.email.asc())
        .limit(SEARCH_LIMIT)
    )
    result = await db.execute(stmt)
    return [user_summary(u) for u in result.scalars().all()]
