"""
장소 조회, 혼잡도 추정, 즐겨찾기

혼잡도는 카테고리별 기본값 × 시간대 배수 × 무작위 변동(0.85~1.15)으로 추정하고 5~95 로 제한합니다.
"""
from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import Any, Callable

from bson import ObjectId
from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from ..sync.mutation import Mutation, MutationDispatcher
from ..sync.query import Page, RemoteQuery
from .pricing import round_half_up

logger = logging.getLogger(__name__)

PLACES_COL = "places"
FAVORITES_COL = "user_favorites"
VISITS_COL = "user_place_visits"

CROWD_MIN = 5
CROWD_MAX = 95

# (시작 시, 종료 시, 배수) 종료 시각은 포함하지 않음
HOUR_MULTIPLIERS = (
    (6, 9, 0.4),
    (9, 12, 0.8),
    (12, 15, 1.2),
    (15, 18, 1.0),
    (18, 21, 0.9),
)
NIGHT_MULTIPLIER = 0.3

QUIET_STATUSES = ("low", "medium")
ALTERNATIVES_LIMIT = 6


def _object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid place id") from exc


def _category_matches(category: str, *keywords: str) -> bool:
    return any(keyword in category for keyword in keywords)


def base_crowd(category: str | None, hour: int, is_weekend: bool) -> int:
    category = (category or "").lower()
    if _category_matches(category, "temple", "religious"):
        return 65 if is_weekend else 35
    if _category_matches(category, "museum", "cultural"):
        return 70 if is_weekend else 45
    if _category_matches(category, "beach", "park"):
        return 75 if is_weekend else 30
    if _category_matches(category, "restaurant", "food"):
        return 80 if 12 <= hour <= 14 or 19 <= hour <= 21 else 25
    if _category_matches(category, "shopping", "market"):
        return 85 if is_weekend else 50
    return 40


def hour_multiplier(hour: int) -> float:
    for start, end, multiplier in HOUR_MULTIPLIERS:
        if start <= hour < end:
            return multiplier
    return NIGHT_MULTIPLIER


def estimate_crowd(
    category: str | None,
    now: datetime,
    rng: Callable[[], float] = random.random,
) -> int:
    is_weekend = now.weekday() >= 5
    factor = 0.85 + rng() * 0.3
    value = round_half_up(base_crowd(category, now.hour, is_weekend) * hour_multiplier(now.hour) * factor)
    return max(CROWD_MIN, min(CROWD_MAX, value))


def crowd_status_for(percentage: int) -> str:
    if percentage > 65:
        return "high"
    if percentage > 35:
        return "medium"
    return "low"


def best_visit_times(category: str | None) -> list[dict[str, str]]:
    category = (category or "").lower()
    days = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
    times: list[dict[str, str]] = []
    for index, day in enumerate(days):
        weekend = index >= 5
        if _category_matches(category, "restaurant", "food"):
            slot = ("10:00-11:30", "low") if weekend else ("14:30-16:00", "low")
        elif _category_matches(category, "museum", "cultural"):
            slot = ("9:00-10:00", "medium") if weekend else ("14:00-16:00", "low")
        elif _category_matches(category, "temple", "religious"):
            slot = ("6:00-8:00", "low")
        else:
            slot = ("7:00-9:00", "medium") if weekend else ("9:00-11:00", "low")
        times.append({"day": day, "time": slot[0], "crowd": slot[1]})
    return times


def normalize_place(doc: dict[str, Any], favorite_ids: set[str] | None = None) -> dict[str, Any]:
    place_id = str(doc["_id"])
    return {
        "id": place_id,
        "name": doc.get("name", ""),
        "city": doc.get("city"),
        "country": doc.get("country"),
        "category": doc.get("category"),
        "description": doc.get("description"),
        "latitude": doc.get("latitude"),
        "longitude": doc.get("longitude"),
        "image_urls": list(doc.get("image_urls") or []),
        "mood_tags": list(doc.get("mood_tags") or []),
        "is_hidden_gem": doc.get("is_hidden_gem", False),
        "crowd_status": doc.get("crowd_status"),
        "crowd_percentage": doc.get("crowd_percentage"),
        "best_visit_times": doc.get("best_visit_times") or [],
        "last_crowd_update": doc.get("last_crowd_update"),
        "is_favorite": place_id in (favorite_ids or set()),
    }


async def favorite_place_ids(db: AsyncIOMotorDatabase, user_id: str) -> set[str]:
    cursor = db[FAVORITES_COL].find({"user_id": user_id}, {"place_id": 1})
    return {doc["place_id"] async for doc in cursor}


def place_query(
    city: str | None = None,
    category: str | None = None,
    hidden_gem: bool | None = None,
) -> RemoteQuery:
    query: dict[str, Any] = {}
    if city:
        query["city"] = city
    if category:
        query["category"] = category
    if hidden_gem is not None:
        query["is_hidden_gem"] = hidden_gem
    return RemoteQuery(PLACES_COL, query, sort=[("name", 1)])


async def list_places(
    db: AsyncIOMotorDatabase,
    user_id: str | None = None,
    *,
    city: str | None = None,
    category: str | None = None,
    hidden_gem: bool | None = None,
    offset: int = 0,
    limit: int | None = None,
) -> Page[dict]:
    page = await place_query(city, category, hidden_gem).fetch(db, offset=offset, limit=limit)
    favorites = await favorite_place_ids(db, user_id) if user_id else set()
    return page.map(lambda doc: normalize_place(doc, favorites))


async def get_place(db: AsyncIOMotorDatabase, place_id: str, user_id: str | None = None) -> dict[str, Any]:
    doc = await db[PLACES_COL].find_one({"_id": _object_id(place_id)})
    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Place not found")
    favorites = await favorite_place_ids(db, user_id) if user_id else set()
    return normalize_place(doc, favorites)


async def refresh_crowd_data(
    dispatcher: MutationDispatcher,
    place_id: str,
    now: datetime | None = None,
    rng: Callable[[], float] = random.random,
) -> dict[str, Any]:
    """
    혼잡도를 새로 추정해 돌려줍니다.

    장소 문서 갱신은 best-effort 로, 실패해도 추정 결과는 그대로 응답합니다.
    """
    db = dispatcher.db
    doc = await db[PLACES_COL].find_one({"_id": _object_id(place_id)})
    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Place not found")

    now = now or datetime.now(timezone.utc)
    percentage = estimate_crowd(doc.get("category"), now, rng)
    crowd = {
        "crowd_status": crowd_status_for(percentage),
        "crowd_percentage": percentage,
        "best_visit_times": best_visit_times(doc.get("category")),
        "last_crowd_update": now,
    }
    try:
        await dispatcher.dispatch(Mutation(table=PLACES_COL, kind="update", filter={"_id": doc["_id"]}, document=crowd))
    except HTTPException as exc:
        logger.warning("혼잡도 저장 실패: place=%s (%s)", place_id, exc.detail)
    return {
        "place_id": place_id,
        "crowd_status": crowd["crowd_status"],
        "crowd_percentage": percentage,
        "best_visit_times": crowd["best_visit_times"],
        "last_updated": now,
    }


def _normalize_favorite(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "user_id": doc["user_id"],
        "place_id": doc["place_id"],
        "created_at": doc.get("created_at"),
    }


async def add_favorite(dispatcher: MutationDispatcher, user_id: str, place_id: str) -> dict[str, Any]:
    await get_place(dispatcher.db, place_id)
    result = await dispatcher.dispatch(
        Mutation(
            table=FAVORITES_COL,
            kind="insert",
            document={"user_id": user_id, "place_id": place_id},
            conflict_detail="Place already in favorites",
        )
    )
    return _normalize_favorite(result.record)


async def remove_favorite(dispatcher: MutationDispatcher, user_id: str, place_id: str) -> None:
    await dispatcher.dispatch(
        Mutation(
            table=FAVORITES_COL,
            kind="delete",
            filter={"user_id": user_id, "place_id": place_id},
            not_found_detail="Favorite not found",
        )
    )


async def list_favorites(db: AsyncIOMotorDatabase, user_id: str) -> list[dict[str, Any]]:
    favorite_docs = await RemoteQuery(FAVORITES_COL, {"user_id": user_id}).fetch_all(db)
    ids = [ObjectId(doc["place_id"]) for doc in favorite_docs if ObjectId.is_valid(doc["place_id"])]
    if not ids:
        return []
    try:
        docs = [doc async for doc in db[PLACES_COL].find({"_id": {"$in": ids}})]
    except PyMongoError as exc:
        logger.error("즐겨찾기 장소 조회 실패: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load favorites") from exc
    favorite_ids = {str(oid) for oid in ids}
    return [normalize_place(doc, favorite_ids) for doc in docs]


async def record_visit(dispatcher: MutationDispatcher, user_id: str, place_id: str, visited_at: datetime | None = None) -> dict[str, Any]:
    await get_place(dispatcher.db, place_id)
    result = await dispatcher.dispatch(
        Mutation(
            table=VISITS_COL,
            kind="insert",
            document={
                "user_id": user_id,
                "place_id": place_id,
                "visited_at": visited_at or datetime.now(timezone.utc),
            },
        )
    )
    record = result.record
    return {
        "id": str(record["_id"]),
        "user_id": user_id,
        "place_id": place_id,
        "visited_at": record["visited_at"],
    }


async def visited_place_ids(db: AsyncIOMotorDatabase, user_id: str) -> set[str]:
    cursor = db[VISITS_COL].find({"user_id": user_id}, {"place_id": 1})
    return {doc["place_id"] async for doc in cursor}


async def crowd_alternatives(
    db: AsyncIOMotorDatabase, place_id: str, user_id: str | None = None, limit: int = ALTERNATIVES_LIMIT
) -> list[dict[str, Any]]:
    """같은 도시에서 지금 덜 붐비는(low/medium) 장소를 혼잡도 낮은 순으로 돌려줍니다."""
    place = await get_place(db, place_id, user_id)
    if not place["city"]:
        return []
    query = RemoteQuery(
        PLACES_COL,
        {"city": place["city"], "crowd_status": {"$in": list(QUIET_STATUSES)}},
        sort=[("crowd_percentage", 1)],
    )
    docs = await query.fetch_all(db, limit=limit + 1)
    favorites = await favorite_place_ids(db, user_id) if user_id else set()
    return [normalize_place(doc, favorites) for doc in docs if str(doc["_id"]) != place_id][:limit]
