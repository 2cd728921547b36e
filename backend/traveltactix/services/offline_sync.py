"""
오프라인 중 쌓인 사용자 작업 큐

처리는 한 건씩 순서대로 하며, 실패한 작업은 synced=False 로 남아 다음 동기화 때 다시 시도됩니다.
알 수 없는 작업 종류는 경고만 남기고 건너뛴 뒤 동기화 완료로 표시합니다.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from bson import ObjectId
from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..sync.mutation import Mutation, MutationDispatcher
from ..sync.operation import AsyncOperation
from ..sync.query import RemoteQuery
from . import missions as mission_service
from . import places as place_service

logger = logging.getLogger(__name__)

OFFLINE_QUEUE_COL = "offline_queue"

ActionHandler = Callable[[MutationDispatcher, str, dict[str, Any]], Awaitable[Any]]


def _require(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not value:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{key} is required")
    return str(value)


async def _favorite(dispatcher: MutationDispatcher, user_id: str, data: dict[str, Any]) -> Any:
    try:
        return await place_service.add_favorite(dispatcher, user_id, _require(data, "place_id"))
    except HTTPException as exc:
        # 이미 반영된 작업을 다시 보낸 경우
        if exc.status_code == status.HTTP_409_CONFLICT:
            return None
        raise


async def _unfavorite(dispatcher: MutationDispatcher, user_id: str, data: dict[str, Any]) -> Any:
    try:
        return await place_service.remove_favorite(dispatcher, user_id, _require(data, "place_id"))
    except HTTPException as exc:
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return None
        raise


async def _visit(dispatcher: MutationDispatcher, user_id: str, data: dict[str, Any]) -> Any:
    visited_at = data.get("visited_at")
    if isinstance(visited_at, str):
        visited_at = datetime.fromisoformat(visited_at)
    return await place_service.record_visit(dispatcher, user_id, _require(data, "place_id"), visited_at)


async def _mission_start(dispatcher: MutationDispatcher, user_id: str, data: dict[str, Any]) -> Any:
    return await mission_service.start_mission(dispatcher, user_id, _require(data, "mission_id"))


ACTION_HANDLERS: dict[str, ActionHandler] = {
    "favorite": _favorite,
    "unfavorite": _unfavorite,
    "visit": _visit,
    "mission_start": _mission_start,
}


def _normalize(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "user_id": doc["user_id"],
        "action_type": doc["action_type"],
        "action_data": doc.get("action_data") or {},
        "synced": doc.get("synced", False),
        "synced_at": doc.get("synced_at"),
        "created_at": doc.get("created_at"),
    }


async def queue_action(
    dispatcher: MutationDispatcher, user_id: str, action_type: str, action_data: dict[str, Any]
) -> dict[str, Any]:
    result = await dispatcher.dispatch(
        Mutation(
            table=OFFLINE_QUEUE_COL,
            kind="insert",
            document={
                "user_id": user_id,
                "action_type": action_type,
                "action_data": action_data,
                "synced": False,
                "synced_at": None,
            },
        )
    )
    return _normalize(result.record)


async def list_pending(db: AsyncIOMotorDatabase, user_id: str) -> list[dict[str, Any]]:
    docs = await RemoteQuery(
        OFFLINE_QUEUE_COL, {"user_id": user_id, "synced": False}, sort=[("created_at", 1)]
    ).fetch_all(db)
    return [_normalize(doc) for doc in docs]


async def process_pending(dispatcher: MutationDispatcher, user_id: str) -> dict[str, Any]:
    """대기 중인 작업을 생성 순서대로 처리하고 결과 집계를 돌려줍니다."""
    db = dispatcher.db
    report = {"processed": 0, "succeeded": 0, "skipped": 0, "failed": 0, "errors": []}
    for action in await list_pending(db, user_id):
        report["processed"] += 1
        handler = ACTION_HANDLERS.get(action["action_type"])
        if handler is None:
            logger.warning("알 수 없는 오프라인 작업 종류: %s", action["action_type"])
            report["skipped"] += 1
        else:
            operation: AsyncOperation[Any] = AsyncOperation(error_message="Failed to sync action")
            await operation.execute(lambda: handler(dispatcher, user_id, action["action_data"]))
            if operation.error is not None:
                report["failed"] += 1
                report["errors"].append(f"{action['action_type']}: {operation.error}")
                continue
            report["succeeded"] += 1

        await db[OFFLINE_QUEUE_COL].update_one(
            {"_id": ObjectId(action["id"])},
            {"$set": {"synced": True, "synced_at": datetime.now(timezone.utc)}},
        )
    if report["processed"]:
        logger.info(
            "오프라인 동기화: user=%s 성공=%d 건너뜀=%d 실패=%d",
            user_id,
            report["succeeded"],
            report["skipped"],
            report["failed"],
        )
    return report
