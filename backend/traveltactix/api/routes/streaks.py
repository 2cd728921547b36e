from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.auth import get_current_user
from ...dependencies import get_dispatcher, get_mongo_db
from ...schemas import Streak, StreakCheckIn, UserPublic
from ...services import streaks as streak_service
from ...sync.mutation import MutationDispatcher

router = APIRouter()


@router.get("/me", response_model=Streak)
async def my_streak(
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> Streak:
    return Streak(**await streak_service.get_streak(db, current_user.id))


@router.post("/check-in", response_model=StreakCheckIn, summary="일일 접속 체크인")
async def check_in(
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> StreakCheckIn:
    return StreakCheckIn(**await streak_service.record_login(dispatcher, current_user.id))
