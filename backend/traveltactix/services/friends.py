from __future__ import annotations

import logging
from typing import Any

from bson import ObjectId
from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..sync.merge import load_side_map, merge_side_loaded
from ..sync.mutation import Mutation, MutationDispatcher
from ..sync.query import RemoteQuery
from . import activity as activity_service
from .profiles import PROFILES_COL

logger = logging.getLogger(__name__)

FRIENDSHIPS_COL = "friendships"


def _object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid friendship id") from exc


def _normalize(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "user_id": doc["user_id"],
        "friend_id": doc["friend_id"],
        "status": doc.get("status", "pending"),
        "created_at": doc.get("created_at"),
        "updated_at": doc.get("updated_at"),
    }


def partner_of(friendship: dict[str, Any], user_id: str) -> str:
    return friendship["friend_id"] if friendship["user_id"] == user_id else friendship["user_id"]


async def get_friends_overview(db: AsyncIOMotorDatabase, user_id: str) -> dict[str, list[dict[str, Any]]]:
    """수락된 친구, 받은 요청, 보낸 요청을 상대방 프로필과 함께 돌려줍니다."""
    docs = await RemoteQuery(
        FRIENDSHIPS_COL,
        {"$or": [{"user_id": user_id}, {"friend_id": user_id}], "status": {"$in": ["pending", "accepted"]}},
    ).fetch_all(db)
    records = [_normalize(doc) for doc in docs]
    profiles = await load_side_map(db, PROFILES_COL, (partner_of(record, user_id) for record in records))
    merged = merge_side_loaded(records, profiles, key=lambda record: partner_of(record, user_id))
    return {
        "friends": [record for record in merged if record["status"] == "accepted"],
        "pending_requests": [
            record for record in merged if record["status"] == "pending" and record["friend_id"] == user_id
        ],
        "sent_requests": [
            record for record in merged if record["status"] == "pending" and record["user_id"] == user_id
        ],
    }


async def send_request(dispatcher: MutationDispatcher, user_id: str, friend_id: str) -> dict[str, Any]:
    if friend_id == user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot send a friend request to yourself")
    db = dispatcher.db
    if not await db[PROFILES_COL].find_one({"user_id": friend_id}):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    # 반대 방향 요청도 중복으로 취급
    reverse = await db[FRIENDSHIPS_COL].find_one({"user_id": friend_id, "friend_id": user_id})
    if reverse:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Friend request already exists")

    result = await dispatcher.dispatch(
        Mutation(
            table=FRIENDSHIPS_COL,
            kind="insert",
            document={"user_id": user_id, "friend_id": friend_id, "status": "pending"},
            conflict_detail="Friend request already exists",
        )
    )
    logger.info("친구 요청: %s -> %s", user_id, friend_id)
    return _normalize(result.record)


async def _respond(
    dispatcher: MutationDispatcher, user_id: str, friendship_id: str, new_status: str
) -> dict[str, Any]:
    result = await dispatcher.dispatch(
        Mutation(
            table=FRIENDSHIPS_COL,
            kind="update",
            filter={"_id": _object_id(friendship_id), "friend_id": user_id, "status": "pending"},
            document={"status": new_status},
            not_found_detail="Friend request not found",
        )
    )
    return _normalize(result.record)


async def accept_request(dispatcher: MutationDispatcher, user_id: str, friendship_id: str) -> dict[str, Any]:
    """받는 사람만 수락할 수 있습니다. 양쪽 모두에게 friend_added 활동을 남깁니다."""
    friendship = await _respond(dispatcher, user_id, friendship_id, "accepted")
    for owner, partner in ((user_id, friendship["user_id"]), (friendship["user_id"], user_id)):
        try:
            await activity_service.post_activity(
                dispatcher,
                owner,
                "friend_added",
                "Made a new friend",
                metadata={"friend_id": partner},
            )
        except HTTPException as exc:
            logger.warning("친구 추가 활동 기록 실패: user=%s (%s)", owner, exc.detail)
    return friendship


async def reject_request(dispatcher: MutationDispatcher, user_id: str, friendship_id: str) -> dict[str, Any]:
    return await _respond(dispatcher, user_id, friendship_id, "rejected")


async def block_user(dispatcher: MutationDispatcher, user_id: str, target_id: str) -> dict[str, Any]:
    if target_id == user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot block yourself")
    db = dispatcher.db
    existing = await db[FRIENDSHIPS_COL].find_one(
        {"$or": [{"user_id": user_id, "friend_id": target_id}, {"user_id": target_id, "friend_id": user_id}]}
    )
    if existing and existing["user_id"] == user_id:
        mutation = Mutation(
            table=FRIENDSHIPS_COL, kind="update", filter={"_id": existing["_id"]}, document={"status": "blocked"}
        )
    else:
        if existing:
            # 상대가 보낸 관계는 지우고 차단한 쪽 기준으로 다시 기록
            await dispatcher.dispatch(Mutation(table=FRIENDSHIPS_COL, kind="delete", filter={"_id": existing["_id"]}))
        mutation = Mutation(
            table=FRIENDSHIPS_COL,
            kind="insert",
            document={"user_id": user_id, "friend_id": target_id, "status": "blocked"},
        )
    result = await dispatcher.dispatch(mutation)
    return _normalize(result.record)


async def remove_friendship(dispatcher: MutationDispatcher, user_id: str, friendship_id: str) -> None:
    await dispatcher.dispatch(
        Mutation(
            table=FRIENDSHIPS_COL,
            kind="delete",
            filter={
                "_id": _object_id(friendship_id),
                "$or": [{"user_id": user_id}, {"friend_id": user_id}],
            },
            not_found_detail="Friendship not found",
        )
    )
