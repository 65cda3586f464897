"""User statistics endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.quiz import UserStatsOut
from app.services.quiz_results import get_user_stats

router = APIRouter()


@router.get("", response_model=UserStatsOut)
async def user_stats(
    db: Annotated[Session, Depends(get_db)],
    user_id: Annotated[str, Query(alias="userId", min_length=1)],
):
    """
    Quiz totals and topic performance for a user.

    Topic percentages are the mean of per-quiz percentages.
    """
    return await get_user_stats(db, user_id)
