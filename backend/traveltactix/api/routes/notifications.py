from fastapi import APIRouter, Depends, HTTPException, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.auth import get_current_user
from ...dependencies import get_dispatcher, get_mongo_db
from ...schemas import Notification, NotificationCreate, PageOut, PushPayload, UserPublic
from ...services import notifications as notification_service
from ...sync.mutation import MutationDispatcher

router = APIRouter()


@router.get("/", response_model=PageOut[Notification])
async def list_notifications(
    unread_only: bool = False,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> PageOut[Notification]:
    page = await notification_service.list_notifications(
        db, current_user.id, unread_only=unread_only, offset=offset, limit=limit
    )
    return PageOut[Notification].from_page(page)


@router.post("/", response_model=PushPayload, status_code=status.HTTP_201_CREATED)
async def send_notification(
    payload: NotificationCreate,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> PushPayload:
    """알림을 저장하고 서비스 워커가 표시할 푸시 페이로드를 돌려줍니다."""
    if payload.user_id and payload.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Notifications can only target yourself")
    notification = await notification_service.create_notification(
        dispatcher,
        current_user.id,
        payload.title,
        payload.message,
        payload.notification_type,
        payload.metadata,
    )
    return PushPayload(**notification_service.build_push_payload(notification))


@router.post("/{notification_id}/read", response_model=Notification)
async def mark_read(
    notification_id: str,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> Notification:
    return Notification(**await notification_service.mark_read(dispatcher, current_user.id, notification_id))


@router.post("/read-all")
async def mark_all_read(
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> dict[str, int]:
    return {"updated": await notification_service.mark_all_read(dispatcher, current_user.id)}
