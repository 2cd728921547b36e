from fastapi import APIRouter, Depends, Response, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.auth import get_current_user
from ...dependencies import get_dispatcher, get_mongo_db
from ...schemas import FriendRequestCreate, FriendsOverview, Friendship, UserPublic
from ...services import friends as friend_service
from ...sync.mutation import MutationDispatcher

router = APIRouter()


@router.get("/", response_model=FriendsOverview)
async def friends_overview(
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> FriendsOverview:
    return FriendsOverview(**await friend_service.get_friends_overview(db, current_user.id))


@router.post("/requests", response_model=Friendship, status_code=status.HTTP_201_CREATED)
async def send_request(
    payload: FriendRequestCreate,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> Friendship:
    return Friendship(**await friend_service.send_request(dispatcher, current_user.id, payload.friend_id))


@router.post("/requests/{friendship_id}/accept", response_model=Friendship)
async def accept_request(
    friendship_id: str,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> Friendship:
    return Friendship(**await friend_service.accept_request(dispatcher, current_user.id, friendship_id))


@router.post("/requests/{friendship_id}/reject", response_model=Friendship)
async def reject_request(
    friendship_id: str,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> Friendship:
    return Friendship(**await friend_service.reject_request(dispatcher, current_user.id, friendship_id))


@router.post("/block/{user_id}", response_model=Friendship)
async def block_user(
    user_id: str,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> Friendship:
    return Friendship(**await friend_service.block_user(dispatcher, current_user.id, user_id))


@router.delete("/{friendship_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_friend(
    friendship_id: str,
    current_user: UserPublic = Depends(get_current_user),
    dispatcher: MutationDispatcher = Depends(get_dispatcher),
) -> Response:
    await friend_service.remove_friendship(dispatcher, current_user.id, friendship_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
