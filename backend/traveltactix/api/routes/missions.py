from fastapi import APIRouter, Depends, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.auth import get_current_user
from ...dependencies import get_dispatcher, get_mongo_db
from ...schemas import Mission, PageOut, UserMission, UserPublic, VerificationRequest, VerificationResponse
from ...schemas.mission import MissionStatus
from ...services import missions as mission_service
from ...sync.mutation import MutationDispatcher

router = APIRouter()


@router.get("/", response_model=PageOut[Mission])
async def list_missions(
    city: str | None = None,
    category: str | None = None,
    difficulty: str | None = None,
    active: bool | None = True,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    _: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> PageOut[Mission]:
    page = await mission_service.list_missions(
        db, city=city, category=category, difficulty=difficulty, active=active, offset=offset, limit=limit
    )
    return PageOut[Mission].from_page(page)


@router.get("/mine", response_model=list[UserMission])
async def my_missions(
    mission_status: MissionStatus | None = Query(default=None, alias="status"),
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> list[UserMission]:
    records = await mission_service.list_my_missions(db, current_user.id, mission_status)
    return [UserMission(**record) for record in records]


@router.get("/{mission_id}", response_model=Mission)
async def get_mission(
    mission_id: str,
    _: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> Mission:
    return Mission(**await mission_service.get_mission(db, mission_id))


@router.post("/{mission_id}/save", response_model=UserMission, status_code=status.HTTP_201_CREATED)
async def save_mission(
    mission_id: str,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> UserMission:
    return UserMission(**await mission_service.save_mission(dispatcher, current_user.id, mission_id))


@router.post("/{mission_id}/start", response_model=UserMission)
async def start_mission(
    mission_id: str,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> UserMission:
    return UserMission(**await mission_service.start_mission(dispatcher, current_user.id, mission_id))


@router.post("/{mission_id}/verify", response_model=VerificationResponse, summary="미션 증거 제출 및 검증")
async def verify_mission(
    mission_id: str,
    payload: VerificationRequest,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> VerificationResponse:
    result = await mission_service.submit_verification(
        dispatcher, current_user.id, mission_id, payload.model_dump(exclude_none=True)
    )
    return VerificationResponse(**result)


@router.post("/{mission_id}/complete", response_model=UserMission)
async def complete_mission(
    mission_id: str,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> UserMission:
    return UserMission(**await mission_service.complete_mission(dispatcher, current_user.id, mission_id))
