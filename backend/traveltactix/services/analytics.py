"""
사용 통계 이벤트와 세션 기록

같은 세션에 대한 세션 갱신이 진행 중이면 이전 요청을 취소하고 마지막 값만 반영합니다.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

EVENTS_COL = "analytics_events"
SESSIONS_COL = "user_sessions"


async def track_event(db: AsyncIOMotorDatabase, user_id: str | None, payload: dict[str, Any]) -> dict[str, Any]:
    doc = {
        "user_id": user_id,
        "event_name": payload["event_name"],
        "event_category": payload.get("event_category"),
        "session_id": payload.get("session_id"),
        "page_url": payload.get("page_url"),
        "properties": payload.get("properties") or {},
        "created_at": datetime.now(timezone.utc),
    }
    try:
        result = await db[EVENTS_COL].insert_one(doc)
    except PyMongoError as exc:
        logger.error("이벤트 기록 실패: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to track event") from exc
    return {"id": str(result.inserted_id), "event_name": doc["event_name"]}


def _normalize_session(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "session_id": doc["session_id"],
        "user_id": doc.get("user_id"),
        "pages_visited": doc.get("pages_visited") or 0,
        "started_at": doc.get("started_at"),
        "last_activity": doc.get("last_activity"),
        "device_type": doc.get("device_type"),
        "referrer": doc.get("referrer"),
    }


async def upsert_session(db: AsyncIOMotorDatabase, user_id: str | None, payload: dict[str, Any]) -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    changes = {
        "user_id": user_id,
        "pages_visited": payload.get("pages_visited", 1),
        "last_activity": now,
    }
    for key in ("device_type", "referrer"):
        if payload.get(key) is not None:
            changes[key] = payload[key]
    try:
        doc = await db[SESSIONS_COL].find_one_and_update(
            {"session_id": payload["session_id"]},
            {"$set": changes, "$setOnInsert": {"started_at": now}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    except PyMongoError as exc:
        logger.error("세션 기록 실패: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update session") from exc
    return _normalize_session(doc)


class SessionTracker:
    """세션 ID 별로 진행 중인 갱신 작업 하나만 유지"""

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Task] = {}

    def inflight(self, session_id: str) -> asyncio.Task | None:
        return self._inflight.get(session_id)

    async def update(self, db: AsyncIOMotorDatabase, user_id: str | None, payload: dict[str, Any]) -> dict[str, Any] | None:
        """
        세션 갱신을 실행합니다.

        Returns:
            갱신된 세션, 이후 요청에 의해 취소된 경우 None
        """
        session_id = payload["session_id"]
        previous = self._inflight.get(session_id)
        if previous is not None and not previous.done():
            previous.cancel()
            logger.debug("이전 세션 갱신 취소: %s", session_id)

        task = asyncio.create_task(upsert_session(db, user_id, payload))
        self._inflight[session_id] = task
        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled() and not _current_task_cancelling():
                return None
            raise
        finally:
            if self._inflight.get(session_id) is task:
                del self._inflight[session_id]


def _current_task_cancelling() -> bool:
    current = asyncio.current_task()
    return bool(current is not None and current.cancelling())
