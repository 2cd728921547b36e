"""
주 레코드 목록과 별도 조회한 연관 레코드(맵)를 합쳐 뷰 레코드로 만듭니다.

연관 레코드가 없으면 예외 대신 플레이스홀더로 채웁니다.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

PLACEHOLDER_PROFILE: dict[str, Any] = {
    "full_name": "Unknown",
    "avatar_url": "",
    "level": 1,
    "total_xp": 0,
}

PROFILE_FIELDS = ("user_id", "full_name", "avatar_url", "level", "total_xp")


def placeholder_profile(user_id: str | None = None) -> dict[str, Any]:
    return {**PLACEHOLDER_PROFILE, "user_id": user_id}


async def load_side_map(
    db: AsyncIOMotorDatabase,
    collection: str,
    ids: Iterable[str],
    *,
    key_field: str = "user_id",
    fields: Iterable[str] = PROFILE_FIELDS,
) -> dict[str, dict[str, Any]]:
    unique_ids = list(dict.fromkeys(i for i in ids if i))
    if not unique_ids:
        return {}
    projection = {name: 1 for name in fields}
    projection["_id"] = 0
    try:
        cursor = db[collection].find({key_field: {"$in": unique_ids}}, projection)
        return {doc[key_field]: doc async for doc in cursor if doc.get(key_field)}
    except PyMongoError as exc:
        # 연관 데이터 조회 실패 시 플레이스홀더로 표시
        logger.warning("%s 연관 조회 실패: %s", collection, exc)
        return {}


def normalize_profile(profile: dict[str, Any] | None, user_id: str | None = None) -> dict[str, Any]:
    if not profile:
        return placeholder_profile(user_id)
    return {
        "user_id": profile.get("user_id", user_id),
        "full_name": profile.get("full_name") or PLACEHOLDER_PROFILE["full_name"],
        "avatar_url": profile.get("avatar_url") or PLACEHOLDER_PROFILE["avatar_url"],
        "level": profile.get("level") or PLACEHOLDER_PROFILE["level"],
        "total_xp": profile.get("total_xp") or 0,
    }


def merge_side_loaded(
    records: Iterable[dict[str, Any]],
    side_map: dict[str, dict[str, Any]],
    *,
    key: str | Callable[[dict[str, Any]], str | None],
    into: str = "profile",
    normalize: Callable[[dict[str, Any] | None, str | None], dict[str, Any]] = normalize_profile,
) -> list[dict[str, Any]]:
    key_fn = key if callable(key) else (lambda record: record.get(key))
    merged: list[dict[str, Any]] = []
    for record in records:
        ref = key_fn(record)
        merged.append({**record, into: normalize(side_map.get(ref) if ref else None, ref)})
    return merged
