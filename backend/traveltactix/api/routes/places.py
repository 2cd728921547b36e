from fastapi import APIRouter, Depends, Query, Response, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.auth import get_current_user
from ...dependencies import get_dispatcher, get_mongo_db
from ...schemas import CrowdData, FavoriteOut, PageOut, Place, UserPublic
from ...services import places as place_service
from ...sync.mutation import MutationDispatcher

router = APIRouter()


@router.get("/", response_model=PageOut[Place])
async def list_places(
    city: str | None = None,
    category: str | None = None,
    hidden_gem: bool | None = None,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> PageOut[Place]:
    page = await place_service.list_places(
        db, current_user.id, city=city, category=category, hidden_gem=hidden_gem, offset=offset, limit=limit
    )
    return PageOut[Place].from_page(page)


@router.get("/favorites", response_model=list[Place])
async def list_favorites(
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> list[Place]:
    return [Place(**place) for place in await place_service.list_favorites(db, current_user.id)]


@router.get("/{place_id}", response_model=Place)
async def get_place(
    place_id: str,
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> Place:
    return Place(**await place_service.get_place(db, place_id, current_user.id))


@router.post("/{place_id}/crowd", response_model=CrowdData, summary="혼잡도 재추정")
async def refresh_crowd(
    place_id: str,
    _: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> CrowdData:
    return CrowdData(**await place_service.refresh_crowd_data(dispatcher, place_id))


@router.get("/{place_id}/alternatives", response_model=list[Place], summary="덜 붐비는 근처 대안 장소")
async def crowd_alternatives(
    place_id: str,
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> list[Place]:
    return [Place(**place) for place in await place_service.crowd_alternatives(db, place_id, current_user.id)]


@router.post("/{place_id}/favorite", response_model=FavoriteOut, status_code=status.HTTP_201_CREATED)
async def add_favorite(
    place_id: str,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> FavoriteOut:
    return FavoriteOut(**await place_service.add_favorite(dispatcher, current_user.id, place_id))


@router.delete("/{place_id}/favorite", status_code=status.HTTP_204_NO_CONTENT)
async def remove_favorite(
    place_id: str,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> Response:
    await place_service.remove_favorite(dispatcher, current_user.id, place_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
