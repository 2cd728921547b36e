from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.auth import get_current_user
from ...dependencies import get_event_bus, get_mongo_db
from ...schemas import LeaderboardEntry, ProfileOut, ProfileUpdate, UserPublic
from ...services import profiles as profile_service
from ...sync.events import EventBus

router = APIRouter()


@router.get("/me", response_model=ProfileOut)
async def my_profile(
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> ProfileOut:
    return ProfileOut(**await profile_service.get_profile(db, current_user.id))


@router.patch("/me", response_model=ProfileOut)
async def update_my_profile(
    payload: ProfileUpdate,
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
    bus: EventBus = Depends(get_event_bus),
) -> ProfileOut:
    profile = await profile_service.update_profile(db, current_user.id, payload.model_dump(exclude_none=True), bus)
    return ProfileOut(**profile)


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def leaderboard(
    limit: int = Query(default=50, ge=1, le=100),
    _: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> list[LeaderboardEntry]:
    return [LeaderboardEntry(**entry) for entry in await profile_service.leaderboard(db, limit)]


@router.get("/{user_id}", response_model=ProfileOut)
async def get_profile(
    user_id: str,
    _: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> ProfileOut:
    return ProfileOut(**await profile_service.get_profile(db, user_id))
