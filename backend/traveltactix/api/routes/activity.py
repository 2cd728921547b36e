from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.auth import get_current_user
from ...dependencies import get_dispatcher, get_mongo_db
from ...schemas import Activity, ActivityCreate, PageOut, UserPublic
from ...services import activity as activity_service
from ...sync.mutation import MutationDispatcher

router = APIRouter()


@router.get("/", response_model=PageOut[Activity])
async def activity_feed(
    scope: Literal["personal", "friends", "global"] = "global",
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> PageOut[Activity]:
    page = await activity_service.list_feed(db, current_user.id, scope, offset=offset, limit=limit)
    return PageOut[Activity].from_page(page)


@router.post("/", response_model=Activity, status_code=status.HTTP_201_CREATED)
async def post_activity(
    payload: ActivityCreate,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> Activity:
    record = await activity_service.post_activity(
        dispatcher,
        current_user.id,
        payload.activity_type,
        payload.title,
        description=payload.description,
        metadata=payload.metadata,
        is_public=payload.is_public,
    )
    return Activity(**record)
