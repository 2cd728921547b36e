"""
미션 목록 / 내 미션 / 상태 전이 (saved → in_progress → verified | rejected → completed)

XP 지급과 활동 피드 기록은 검증 성공 시 best-effort 후속 쓰기로 실행합니다.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId
from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..core.config import settings
from ..sync.merge import merge_side_loaded
from ..sync.mutation import Mutation, MutationDispatcher
from ..sync.query import Page, RemoteQuery
from . import activity as activity_service
from . import landmarks
from . import profiles as profile_service
from . import verification

logger = logging.getLogger(__name__)

MISSIONS_COL = "missions"
USER_MISSIONS_COL = "user_missions"

SUBMITTABLE_STATUSES = ("in_progress", "rejected")
STARTABLE_STATUSES = ("saved", "rejected")


def _object_id(value: str, detail: str) -> ObjectId:
    try:
        return ObjectId(value)
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail) from exc


def normalize_mission(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "title": doc.get("title", ""),
        "description": doc.get("description"),
        "category": doc.get("category"),
        "difficulty": doc.get("difficulty"),
        "city": doc.get("city"),
        "country": doc.get("country"),
        "latitude": doc.get("latitude"),
        "longitude": doc.get("longitude"),
        "xp_reward": doc.get("xp_reward") or 0,
        "deadline": doc.get("deadline"),
        "is_active": doc.get("is_active", True),
    }


def normalize_user_mission(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "user_id": doc["user_id"],
        "mission_id": doc["mission_id"],
        "status": doc.get("status", "saved"),
        "verification_type": doc.get("verification_type"),
        "verification_notes": doc.get("verification_notes"),
        "attempts": doc.get("attempts") or 0,
        "xp_awarded": doc.get("xp_awarded", False),
        "progress": doc.get("progress") or 0,
        "total_required": doc.get("total_required") or 1,
        "started_at": doc.get("started_at"),
        "verified_at": doc.get("verified_at"),
        "completed_at": doc.get("completed_at"),
    }


def mission_query(
    city: str | None = None,
    category: str | None = None,
    difficulty: str | None = None,
    active: bool | None = True,
) -> RemoteQuery:
    query: dict[str, Any] = {}
    if city:
        query["city"] = city
    if category:
        query["category"] = category
    if difficulty:
        query["difficulty"] = difficulty
    if active is not None:
        query["is_active"] = active
    return RemoteQuery(MISSIONS_COL, query)


async def list_missions(
    db: AsyncIOMotorDatabase,
    *,
    city: str | None = None,
    category: str | None = None,
    difficulty: str | None = None,
    active: bool | None = True,
    offset: int = 0,
    limit: int | None = None,
) -> Page[dict]:
    page = await mission_query(city, category, difficulty, active).fetch(db, offset=offset, limit=limit)
    return page.map(normalize_mission)


async def get_mission(db: AsyncIOMotorDatabase, mission_id: str) -> dict[str, Any]:
    doc = await db[MISSIONS_COL].find_one({"_id": _object_id(mission_id, "Invalid mission id")})
    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mission not found")
    return normalize_mission(doc)


async def _load_missions(db: AsyncIOMotorDatabase, mission_ids: list[str]) -> dict[str, dict[str, Any]]:
    object_ids = [ObjectId(mid) for mid in dict.fromkeys(mission_ids) if ObjectId.is_valid(mid)]
    if not object_ids:
        return {}
    cursor = db[MISSIONS_COL].find({"_id": {"$in": object_ids}})
    return {str(doc["_id"]): normalize_mission(doc) async for doc in cursor}


async def list_my_missions(
    db: AsyncIOMotorDatabase, user_id: str, mission_status: str | None = None
) -> list[dict[str, Any]]:
    query: dict[str, Any] = {"user_id": user_id}
    if mission_status:
        query["status"] = mission_status
    docs = await RemoteQuery(USER_MISSIONS_COL, query).fetch_all(db)
    records = [normalize_user_mission(doc) for doc in docs]
    missions = await _load_missions(db, [record["mission_id"] for record in records])
    return merge_side_loaded(
        records,
        missions,
        key="mission_id",
        into="mission",
        normalize=lambda mission, _ref: mission,
    )


async def get_user_mission(db: AsyncIOMotorDatabase, user_id: str, mission_id: str) -> dict[str, Any]:
    doc = await db[USER_MISSIONS_COL].find_one({"user_id": user_id, "mission_id": mission_id})
    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mission not started")
    record = normalize_user_mission(doc)
    missions = await _load_missions(db, [mission_id])
    record["mission"] = missions.get(mission_id)
    return record


async def save_mission(dispatcher: MutationDispatcher, user_id: str, mission_id: str) -> dict[str, Any]:
    db = dispatcher.db
    await get_mission(db, mission_id)
    result = await dispatcher.dispatch(
        Mutation(
            table=USER_MISSIONS_COL,
            kind="insert",
            document={
                "user_id": user_id,
                "mission_id": mission_id,
                "status": "saved",
                "attempts": 0,
                "xp_awarded": False,
                "progress": 0,
                "total_required": 1,
            },
            conflict_detail="Mission already saved",
        ),
        refetch=lambda: get_user_mission(db, user_id, mission_id),
    )
    return result.refreshed


async def start_mission(dispatcher: MutationDispatcher, user_id: str, mission_id: str) -> dict[str, Any]:
    db = dispatcher.db
    mission = await get_mission(db, mission_id)
    if not mission["is_active"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Mission is not active")

    now = datetime.now(timezone.utc)
    existing = await db[USER_MISSIONS_COL].find_one({"user_id": user_id, "mission_id": mission_id})
    if existing is None:
        mutation = Mutation(
            table=USER_MISSIONS_COL,
            kind="insert",
            document={
                "user_id": user_id,
                "mission_id": mission_id,
                "status": "in_progress",
                "attempts": 0,
                "xp_awarded": False,
                "progress": 0,
                "total_required": 1,
                "started_at": now,
            },
            conflict_detail="Mission already started",
        )
    elif existing.get("status") == "in_progress":
        return await get_user_mission(db, user_id, mission_id)
    else:
        mutation = Mutation(
            table=USER_MISSIONS_COL,
            kind="update",
            filter={"_id": existing["_id"], "status": {"$in": list(STARTABLE_STATUSES)}},
            document={"status": "in_progress", "started_at": now},
            not_found_detail="Mission already started",
            not_found_status=status.HTTP_409_CONFLICT,
        )
    result = await dispatcher.dispatch(mutation, refetch=lambda: get_user_mission(db, user_id, mission_id))
    logger.info("미션 시작: user=%s mission=%s", user_id, mission_id)
    return result.refreshed


async def evaluate_evidence(
    mission: dict[str, Any],
    payload: dict[str, Any],
) -> verification.VerificationOutcome:
    method = payload.get("verification_type")
    if method == "location":
        return verification.verify_location(
            payload.get("latitude"),
            payload.get("longitude"),
            mission.get("latitude"),
            mission.get("longitude"),
            radius_km=settings.verification_radius_km,
        )
    if method == "photo":
        image = payload.get("image_base64")
        if not image:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Photo is required")
        recognition = await landmarks.recognize_landmark(image, payload.get("latitude"), payload.get("longitude"))
        return verification.verify_photo(recognition)
    if method == "checkin":
        return verification.verify_checklist(payload.get("checklist"))
    if method == "quiz":
        quiz = payload.get("quiz") or {}
        return verification.verify_quiz(quiz.get("correct", 0), quiz.get("total", 0))
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported verification type")


def _verification_data(payload: dict[str, Any]) -> dict[str, Any]:
    data = {key: value for key, value in payload.items() if key != "image_base64" and value is not None}
    if payload.get("image_base64"):
        data["image_size"] = len(payload["image_base64"])
    return data


async def submit_verification(
    dispatcher: MutationDispatcher,
    user_id: str,
    mission_id: str,
    payload: dict[str, Any],
) -> dict[str, Any]:
    """
    증거를 검증하고 결과 상태(verified / rejected)를 기록합니다.

    verified 전이는 in_progress / rejected 상태에서 한 번만 일어나므로 XP 는 정확히 한 번 지급됩니다.
    """
    db = dispatcher.db
    mission = await get_mission(db, mission_id)
    existing = await db[USER_MISSIONS_COL].find_one({"user_id": user_id, "mission_id": mission_id})
    if not existing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mission not started")

    current = existing.get("status")
    if current in ("verified", "completed"):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Mission already verified")
    if current not in SUBMITTABLE_STATUSES:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Mission must be started before verification")

    attempts = existing.get("attempts") or 0
    max_attempts = settings.mission_max_attempts
    if max_attempts is not None and attempts >= max_attempts:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Maximum verification attempts reached")

    outcome = await evaluate_evidence(mission, payload)
    now = datetime.now(timezone.utc)
    changes: dict[str, Any] = {
        "status": "verified" if outcome.verified else "rejected",
        "verification_type": payload.get("verification_type"),
        "verification_data": _verification_data(payload),
        "verification_notes": outcome.notes,
        "attempts": attempts + 1,
    }
    follow_ups = []
    xp_reward = mission["xp_reward"]
    if outcome.verified:
        changes.update(
            {
                "verified_at": now,
                "xp_awarded": True,
                "progress": existing.get("total_required") or 1,
            }
        )
        if xp_reward:
            follow_ups.append(lambda: profile_service.increment_xp(db, user_id, xp_reward, dispatcher.bus))
        follow_ups.append(
            lambda: activity_service.post_activity(
                dispatcher,
                user_id,
                "mission_completed",
                f"Completed mission: {mission['title']}",
                description=outcome.notes,
                metadata={"mission_id": mission_id, "xp_earned": xp_reward},
            )
        )

    result = await dispatcher.dispatch(
        Mutation(
            table=USER_MISSIONS_COL,
            kind="update",
            filter={
                "_id": existing["_id"],
                "status": {"$in": list(SUBMITTABLE_STATUSES)},
                "xp_awarded": {"$ne": True},
            },
            document=changes,
            not_found_detail="Mission already verified",
            not_found_status=status.HTTP_409_CONFLICT,
        ),
        refetch=lambda: get_user_mission(db, user_id, mission_id),
        follow_ups=follow_ups,
    )
    if result.follow_up_errors:
        logger.warning("미션 검증 후속 처리 일부 실패: user=%s mission=%s", user_id, mission_id)
    logger.info("미션 검증: user=%s mission=%s verified=%s", user_id, mission_id, outcome.verified)
    return {
        "success": True,
        "verified": outcome.verified,
        "status": changes["status"],
        "verification_notes": outcome.notes,
        "xp_earned": xp_reward if outcome.verified else 0,
        "details": outcome.details,
        "user_mission": result.refreshed,
    }


async def complete_mission(dispatcher: MutationDispatcher, user_id: str, mission_id: str) -> dict[str, Any]:
    db = dispatcher.db
    result = await dispatcher.dispatch(
        Mutation(
            table=USER_MISSIONS_COL,
            kind="update",
            filter={"user_id": user_id, "mission_id": mission_id, "status": "verified"},
            document={"status": "completed", "completed_at": datetime.now(timezone.utc)},
            not_found_detail="Mission must be verified before completion",
            not_found_status=status.HTTP_409_CONFLICT,
        ),
        refetch=lambda: get_user_mission(db, user_id, mission_id),
    )
    return result.refreshed
