from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from ..sync.events import ChangeType, EventBus, make_event

logger = logging.getLogger(__name__)

PROFILES_COL = "profiles"

XP_PER_LEVEL = 1000


def level_from_xp(total_xp: int) -> int:
    """1000 XP 마다 1레벨 (0 XP = 1레벨)"""
    return max(0, total_xp) // XP_PER_LEVEL + 1


def xp_progress(total_xp: int) -> dict[str, int]:
    current = max(0, total_xp) % XP_PER_LEVEL
    return {
        "level": level_from_xp(total_xp),
        "xp_into_level": current,
        "xp_to_next_level": XP_PER_LEVEL - current,
    }


def _normalize(doc: dict[str, Any]) -> dict[str, Any]:
    total_xp = doc.get("total_xp") or 0
    return {
        "id": str(doc["_id"]),
        "user_id": doc["user_id"],
        "full_name": doc.get("full_name") or "",
        "avatar_url": doc.get("avatar_url") or "",
        "bio": doc.get("bio"),
        "total_xp": total_xp,
        **xp_progress(total_xp),
    }


async def create_profile(db: AsyncIOMotorDatabase, user_id: str, full_name: str) -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    doc = {
        "user_id": user_id,
        "full_name": full_name,
        "avatar_url": "",
        "bio": None,
        "level": 1,
        "total_xp": 0,
        "created_at": now,
        "updated_at": now,
    }
    result = await db[PROFILES_COL].insert_one(doc)
    doc["_id"] = result.inserted_id
    return _normalize(doc)


async def get_profile(db: AsyncIOMotorDatabase, user_id: str) -> dict[str, Any]:
    doc = await db[PROFILES_COL].find_one({"user_id": user_id})
    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return _normalize(doc)


async def update_profile(
    db: AsyncIOMotorDatabase, user_id: str, changes: dict[str, Any], bus: EventBus | None = None
) -> dict[str, Any]:
    allowed = {key: value for key, value in changes.items() if key in {"full_name", "avatar_url", "bio"}}
    allowed["updated_at"] = datetime.now(timezone.utc)
    doc = await db[PROFILES_COL].find_one_and_update(
        {"user_id": user_id},
        {"$set": allowed},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    if bus is not None:
        await bus.publish(make_event(PROFILES_COL, ChangeType.UPDATE, doc))
    return _normalize(doc)


async def increment_xp(
    db: AsyncIOMotorDatabase, user_id: str, amount: int, bus: EventBus | None = None
) -> dict[str, Any]:
    """
    XP 를 원자적으로 증가시키고 레벨을 다시 계산합니다.

    호출 측은 이 함수를 best-effort 후속 쓰기로 사용하므로 실패 시 예외를 그대로 올립니다.
    """
    doc = await db[PROFILES_COL].find_one_and_update(
        {"user_id": user_id},
        {"$inc": {"total_xp": amount}, "$set": {"updated_at": datetime.now(timezone.utc)}},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise LookupError(f"profile for user {user_id} not found")
    level = level_from_xp(doc.get("total_xp") or 0)
    if doc.get("level") != level:
        await db[PROFILES_COL].update_one({"_id": doc["_id"]}, {"$set": {"level": level}})
        doc["level"] = level
        logger.info("레벨 업: user=%s level=%s", user_id, level)
    if bus is not None:
        await bus.publish(make_event(PROFILES_COL, ChangeType.UPDATE, doc))
    return _normalize(doc)


async def leaderboard(db: AsyncIOMotorDatabase, limit: int = 50) -> list[dict[str, Any]]:
    cursor = db[PROFILES_COL].find({}).sort([("total_xp", -1), ("created_at", 1)]).limit(limit)
    entries: list[dict[str, Any]] = []
    rank = 0
    async for doc in cursor:
        rank += 1
        profile = _normalize(doc)
        entries.append(
            {
                "rank": rank,
                "user_id": profile["user_id"],
                "display_name": profile["full_name"] or "Traveler",
                "level": profile["level"],
                "total_xp": profile["total_xp"],
            }
        )
    return entries
