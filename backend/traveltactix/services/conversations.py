from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId
from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..core.config import settings
from ..sync.debounce import Debouncer
from ..sync.query import RemoteQuery

logger = logging.getLogger(__name__)

CONVERSATIONS_COL = "ai_conversations"
TITLE_LENGTH = 50


def _object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid conversation id") from exc


def title_from_messages(messages: list[dict[str, Any]]) -> str:
    first = next((message["content"] for message in messages if message.get("role") == "user"), "")
    first = " ".join(first.split())
    if not first:
        return "New conversation"
    return first if len(first) <= TITLE_LENGTH else first[: TITLE_LENGTH - 3] + "..."


def _normalize(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "user_id": doc["user_id"],
        "title": doc.get("title") or "New conversation",
        "messages": doc.get("messages") or [],
        "updated_at": doc.get("updated_at"),
    }


async def list_conversations(db: AsyncIOMotorDatabase, user_id: str) -> list[dict[str, Any]]:
    docs = await RemoteQuery(
        CONVERSATIONS_COL, {"user_id": user_id}, sort=[("updated_at", -1)], projection={"messages": 0}
    ).fetch_all(db, limit=50)
    return [_normalize(doc) for doc in docs]


async def get_conversation(db: AsyncIOMotorDatabase, user_id: str, conversation_id: str) -> dict[str, Any]:
    doc = await db[CONVERSATIONS_COL].find_one({"_id": _object_id(conversation_id), "user_id": user_id})
    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return _normalize(doc)


async def delete_conversation(db: AsyncIOMotorDatabase, user_id: str, conversation_id: str) -> None:
    result = await db[CONVERSATIONS_COL].delete_one({"_id": _object_id(conversation_id), "user_id": user_id})
    if not result.deleted_count:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")


class ConversationAutosave:
    """
    스트리밍 중 대화 내용을 디바운스하여 저장

    첫 저장 시 문서를 만들고 이후에는 같은 문서를 갱신합니다. 스트림이 끝나면 flush() 로 마지막 상태를 저장합니다.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        user_id: str,
        conversation_id: str | None = None,
        delay: float | None = None,
    ) -> None:
        self.db = db
        self.user_id = user_id
        self.conversation_id = conversation_id
        self._debouncer: Debouncer[list[dict[str, Any]]] = Debouncer(
            self._save, settings.conversation_autosave_seconds if delay is None else delay
        )

    async def _save(self, messages: list[dict[str, Any]]) -> None:
        now = datetime.now(timezone.utc)
        fields = {"messages": messages, "title": title_from_messages(messages), "updated_at": now}
        if self.conversation_id is None:
            result = await self.db[CONVERSATIONS_COL].insert_one(
                {"user_id": self.user_id, "created_at": now, **fields}
            )
            self.conversation_id = str(result.inserted_id)
            return
        await self.db[CONVERSATIONS_COL].update_one(
            {"_id": _object_id(self.conversation_id), "user_id": self.user_id},
            {"$set": fields},
        )

    def push(self, messages: list[dict[str, Any]]) -> None:
        self._debouncer.push([dict(message) for message in messages])

    async def flush(self) -> None:
        await self._debouncer.flush()

    def cancel(self) -> None:
        self._debouncer.cancel()
