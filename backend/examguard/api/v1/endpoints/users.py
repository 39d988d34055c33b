from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from ....api.deps import get_current_active_user
from ....core.database import get_async_db
from ....models.user import User as UserModel
from ....schemas.exam import ExamAttempt
from ....schemas.user import User
from ....services.attempt_service import SessionAttemptTracker

router = APIRouter()


@router.get("/me", response_model=User)
async def read_users_me(current_user: UserModel = Depends(get_current_active_user)):
    return current_user


@router.get("/me/attempts", response_model=List[ExamAttempt])
async def read_my_attempts(
    current_user: UserModel = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_db)
):
    """Exams the caller has started; completedAt is set once submitted"""
    return await SessionAttemptTracker(db).list_attempts(current_user.id)
