from __future__ import annotations

import logging
from typing import Any, Literal

from motor.motor_asyncio import AsyncIOMotorDatabase

from ..sync.merge import load_side_map, merge_side_loaded
from ..sync.mutation import Mutation, MutationDispatcher
from ..sync.query import Page, RemoteQuery
from .profiles import PROFILES_COL

logger = logging.getLogger(__name__)

ACTIVITY_COL = "activity_feed"
FRIENDSHIPS_COL = "friendships"

FeedScope = Literal["personal", "friends", "global"]

ACTIVITY_ICONS = {
    "mission_completed": "🎯",
    "badge_earned": "🏆",
    "level_up": "⬆️",
    "place_visited": "📍",
    "friend_added": "👋",
    "team_joined": "👥",
    "achievement_unlocked": "🏅",
    "streak_milestone": "🔥",
}
DEFAULT_ICON = "📣"


def activity_icon(activity_type: str) -> str:
    return ACTIVITY_ICONS.get(activity_type, DEFAULT_ICON)


def _normalize(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "user_id": doc["user_id"],
        "activity_type": doc["activity_type"],
        "title": doc.get("title", ""),
        "description": doc.get("description"),
        "metadata": doc.get("metadata") or {},
        "is_public": doc.get("is_public", True),
        "icon": activity_icon(doc["activity_type"]),
        "created_at": doc.get("created_at"),
    }


async def accepted_friend_ids(db: AsyncIOMotorDatabase, user_id: str) -> list[str]:
    """수락된 친구 관계의 상대방 ID (요청/수신 양방향)"""
    cursor = db[FRIENDSHIPS_COL].find(
        {"status": "accepted", "$or": [{"user_id": user_id}, {"friend_id": user_id}]},
        {"user_id": 1, "friend_id": 1},
    )
    ids: list[str] = []
    async for doc in cursor:
        ids.append(doc["friend_id"] if doc["user_id"] == user_id else doc["user_id"])
    return ids


async def post_activity(
    dispatcher: MutationDispatcher,
    user_id: str,
    activity_type: str,
    title: str,
    *,
    description: str | None = None,
    metadata: dict[str, Any] | None = None,
    is_public: bool = True,
) -> dict[str, Any]:
    result = await dispatcher.dispatch(
        Mutation(
            table=ACTIVITY_COL,
            kind="insert",
            document={
                "user_id": user_id,
                "activity_type": activity_type,
                "title": title,
                "description": description,
                "metadata": metadata or {},
                "is_public": is_public,
            },
        )
    )
    return _normalize(result.record)


async def feed_query(db: AsyncIOMotorDatabase, user_id: str, scope: FeedScope) -> RemoteQuery | None:
    if scope == "personal":
        return RemoteQuery(ACTIVITY_COL, {"user_id": user_id})
    if scope == "friends":
        friend_ids = await accepted_friend_ids(db, user_id)
        if not friend_ids:
            return None
        return RemoteQuery(ACTIVITY_COL, {"user_id": {"$in": friend_ids}, "is_public": True})
    return RemoteQuery(ACTIVITY_COL, {"is_public": True})


async def list_feed(
    db: AsyncIOMotorDatabase,
    user_id: str,
    scope: FeedScope = "global",
    offset: int = 0,
    limit: int | None = None,
) -> Page[dict]:
    query = await feed_query(db, user_id, scope)
    if query is None:
        return Page(items=[], offset=offset, limit=limit or 20)
    page = await query.fetch(db, offset=offset, limit=limit)
    records = [_normalize(doc) for doc in page.items]
    profiles = await load_side_map(db, PROFILES_COL, (record["user_id"] for record in records))
    return Page(
        items=merge_side_loaded(records, profiles, key="user_id"),
        offset=page.offset,
        limit=page.limit,
    )
