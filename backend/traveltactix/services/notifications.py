from __future__ import annotations

import logging
from typing import Any, Mapping

from bson import ObjectId
from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..sync.events import ChangeType
from ..sync.mutation import Mutation, MutationDispatcher
from ..sync.query import Page, RemoteQuery

logger = logging.getLogger(__name__)

NOTIFICATIONS_COL = "user_notifications"

NOTIFICATION_TYPES = ("mission", "achievement", "streak", "xp", "leaderboard", "info")

DEFAULT_PUSH_TITLE = "TravelTacTix"
DEFAULT_PUSH_TAG = "traveltactix-notification"
DEFAULT_PUSH_ACTIONS = (
    {"action": "open", "title": "Open"},
    {"action": "dismiss", "title": "Dismiss"},
)


def _normalize(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "user_id": doc["user_id"],
        "title": doc.get("title", ""),
        "message": doc.get("message", ""),
        "notification_type": doc.get("notification_type", "info"),
        "metadata": doc.get("metadata") or {},
        "is_read": doc.get("is_read", False),
        "created_at": doc.get("created_at"),
    }


def build_push_payload(data: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    푸시 메시지 데이터를 서비스 워커가 표시할 알림 형태로 변환합니다.

    body 는 body 가 없으면 message 를 사용하고, 나머지 항목은 기본값으로 채웁니다.
    """
    data = data or {}
    metadata = data.get("metadata") or {}
    return {
        "title": data.get("title") or DEFAULT_PUSH_TITLE,
        "body": data.get("body") or data.get("message") or "",
        "url": data.get("url") or metadata.get("url") or "/",
        "tag": data.get("tag") or DEFAULT_PUSH_TAG,
        "actions": list(data.get("actions") or DEFAULT_PUSH_ACTIONS),
    }


async def create_notification(
    dispatcher: MutationDispatcher,
    user_id: str,
    title: str,
    message: str,
    notification_type: str = "info",
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    if not title or not message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title and message are required")
    if notification_type not in NOTIFICATION_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid notification type")
    result = await dispatcher.dispatch(
        Mutation(
            table=NOTIFICATIONS_COL,
            kind="insert",
            document={
                "user_id": user_id,
                "title": title,
                "message": message,
                "notification_type": notification_type,
                "metadata": metadata or {},
                "is_read": False,
            },
        )
    )
    logger.info("알림 생성: user=%s type=%s", user_id, notification_type)
    return _normalize(result.record)


async def list_notifications(
    db: AsyncIOMotorDatabase,
    user_id: str,
    unread_only: bool = False,
    offset: int = 0,
    limit: int | None = None,
) -> Page[dict]:
    query: dict[str, Any] = {"user_id": user_id}
    if unread_only:
        query["is_read"] = False
    page = await RemoteQuery(NOTIFICATIONS_COL, query).fetch(db, offset=offset, limit=limit)
    return page.map(_normalize)


async def mark_read(dispatcher: MutationDispatcher, user_id: str, notification_id: str) -> dict[str, Any]:
    try:
        object_id = ObjectId(notification_id)
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid notification id") from exc
    result = await dispatcher.dispatch(
        Mutation(
            table=NOTIFICATIONS_COL,
            kind="update",
            filter={"_id": object_id, "user_id": user_id},
            document={"is_read": True},
            not_found_detail="Notification not found",
        )
    )
    return _normalize(result.record)


async def mark_all_read(dispatcher: MutationDispatcher, user_id: str) -> int:
    result = await dispatcher.db[NOTIFICATIONS_COL].update_many(
        {"user_id": user_id, "is_read": False}, {"$set": {"is_read": True}}
    )
    if result.modified_count:
        await dispatcher.publish(NOTIFICATIONS_COL, ChangeType.UPDATE, {"user_id": user_id})
    return result.modified_count
