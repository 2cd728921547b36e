from fastapi import APIRouter, Depends, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.auth import get_current_user
from ...dependencies import get_dispatcher, get_mongo_db
from ...schemas import OfflineAction, QueuedAction, SyncReport, UserPublic
from ...services import offline_sync
from ...sync.mutation import MutationDispatcher

router = APIRouter()


@router.post("/queue", response_model=QueuedAction, status_code=status.HTTP_201_CREATED)
async def queue_action(
    payload: OfflineAction,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> QueuedAction:
    record = await offline_sync.queue_action(dispatcher, current_user.id, payload.action_type, payload.action_data)
    return QueuedAction(**record)


@router.get("/queue", response_model=list[QueuedAction])
async def pending_actions(
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> list[QueuedAction]:
    return [QueuedAction(**record) for record in await offline_sync.list_pending(db, current_user.id)]


@router.post("/process", response_model=SyncReport, summary="대기 중인 오프라인 작업 동기화")
async def process_queue(
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> SyncReport:
    return SyncReport(**await offline_sync.process_pending(dispatcher, current_user.id))
