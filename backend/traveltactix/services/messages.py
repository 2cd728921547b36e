"""
1:1 메시지와 대화 목록

대화 목록은 저장하지 않고 메시지에서 매번 계산합니다 (상대방별 마지막 메시지 + 안 읽은 수).
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..sync.events import ChangeType
from ..sync.merge import load_side_map, merge_side_loaded
from ..sync.mutation import Mutation, MutationDispatcher
from ..sync.query import Page, RemoteQuery
from .profiles import PROFILES_COL

logger = logging.getLogger(__name__)

MESSAGES_COL = "messages"


def _normalize(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "sender_id": doc["sender_id"],
        "receiver_id": doc["receiver_id"],
        "content": doc.get("content", ""),
        "is_read": doc.get("is_read", False),
        "read_at": doc.get("read_at"),
        "created_at": doc.get("created_at"),
    }


def _sort_key(message: dict[str, Any]) -> datetime:
    return message.get("created_at") or datetime.min.replace(tzinfo=timezone.utc)


def group_conversations(messages: Iterable[dict[str, Any]], user_id: str) -> list[dict[str, Any]]:
    """
    메시지를 상대방별로 묶어 대화 목록을 만듭니다.

    Returns:
        최근 메시지 순으로 정렬된 [{partner_id, last_message, unread_count}]
    """
    conversations: dict[str, dict[str, Any]] = {}
    for message in messages:
        partner_id = message["receiver_id"] if message["sender_id"] == user_id else message["sender_id"]
        conversation = conversations.setdefault(
            partner_id, {"partner_id": partner_id, "last_message": message, "unread_count": 0}
        )
        if _sort_key(message) > _sort_key(conversation["last_message"]):
            conversation["last_message"] = message
        if message["receiver_id"] == user_id and not message.get("is_read"):
            conversation["unread_count"] += 1
    return sorted(conversations.values(), key=lambda item: _sort_key(item["last_message"]), reverse=True)


async def list_conversations(db: AsyncIOMotorDatabase, user_id: str) -> list[dict[str, Any]]:
    docs = await RemoteQuery(
        MESSAGES_COL, {"$or": [{"sender_id": user_id}, {"receiver_id": user_id}]}
    ).fetch_all(db, limit=1000)
    conversations = group_conversations((_normalize(doc) for doc in docs), user_id)
    profiles = await load_side_map(db, PROFILES_COL, (item["partner_id"] for item in conversations))
    return merge_side_loaded(conversations, profiles, key="partner_id", into="partner")


async def get_thread(
    db: AsyncIOMotorDatabase, user_id: str, partner_id: str, offset: int = 0, limit: int | None = 50
) -> Page[dict]:
    query = RemoteQuery(
        MESSAGES_COL,
        {
            "$or": [
                {"sender_id": user_id, "receiver_id": partner_id},
                {"sender_id": partner_id, "receiver_id": user_id},
            ]
        },
        sort=[("created_at", 1)],
        page_size=50,
    )
    page = await query.fetch(db, offset=offset, limit=limit)
    return page.map(_normalize)


async def send_message(dispatcher: MutationDispatcher, sender_id: str, receiver_id: str, content: str) -> dict[str, Any]:
    if receiver_id == sender_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot send a message to yourself")
    content = content.strip()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message content is required")
    result = await dispatcher.dispatch(
        Mutation(
            table=MESSAGES_COL,
            kind="insert",
            document={
                "sender_id": sender_id,
                "receiver_id": receiver_id,
                "content": content,
                "is_read": False,
                "read_at": None,
            },
        )
    )
    return _normalize(result.record)


async def mark_thread_read(dispatcher: MutationDispatcher, user_id: str, partner_id: str) -> int:
    """상대방이 보낸 안 읽은 메시지를 모두 읽음 처리하고 처리 건수를 돌려줍니다."""
    now = datetime.now(timezone.utc)
    result = await dispatcher.db[MESSAGES_COL].update_many(
        {"sender_id": partner_id, "receiver_id": user_id, "is_read": False},
        {"$set": {"is_read": True, "read_at": now}},
    )
    if result.modified_count:
        await dispatcher.publish(
            MESSAGES_COL,
            ChangeType.UPDATE,
            {"sender_id": partner_id, "receiver_id": user_id, "is_read": True},
        )
    return result.modified_count
