from fastapi import APIRouter, Depends, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.auth import get_current_user
from ...dependencies import get_dispatcher, get_mongo_db
from ...schemas import Conversation, Message, MessageCreate, PageOut, UserPublic
from ...services import messages as message_service
from ...sync.mutation import MutationDispatcher

router = APIRouter()


@router.get("/conversations", response_model=list[Conversation])
async def list_conversations(
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> list[Conversation]:
    return [Conversation(**item) for item in await message_service.list_conversations(db, current_user.id)]


@router.get("/with/{partner_id}", response_model=PageOut[Message])
async def get_thread(
    partner_id: str,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> PageOut[Message]:
    page = await message_service.get_thread(db, current_user.id, partner_id, offset=offset, limit=limit)
    return PageOut[Message].from_page(page)


@router.post("/", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> Message:
    message = await message_service.send_message(dispatcher, current_user.id, payload.receiver_id, payload.content)
    return Message(**message)


@router.post("/with/{partner_id}/read")
async def mark_read(
    partner_id: str,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> dict[str, int]:
    return {"updated": await message_service.mark_thread_read(dispatcher, current_user.id, partner_id)}
