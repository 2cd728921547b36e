"""
개인화 미션 추천

완료 이력으로 여행자 통계(레벨, 완료율, 평균 소요 시간, 선호 카테고리)를 계산하고,
아직 끝내지 않은 활성 미션 중에서 AI 가 고른 5개를 돌려줍니다.
AI 응답을 쓸 수 없으면 선호 카테고리 → 거리 순의 기본 추천을 사용합니다.
"""
from __future__ import annotations

import json
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..sync.query import RemoteQuery
from . import ai_gateway
from . import missions as mission_service
from . import profiles as profile_service
from .geolocation import calculate_distance_km
from .pricing import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "culture"
DEFAULT_MINUTES_PER_MISSION = 60
FINISHED_STATUSES = ("verified", "completed")
FALLBACK_FIT_SCORE = 70
TOP_PICKS = 5
MAX_CANDIDATES = 30


def _as_utc(value: datetime) -> datetime:
    # Mongo 는 tz 정보 없는 UTC datetime 을 돌려줌
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def traveler_stats(level: int, history: list[dict[str, Any]]) -> dict[str, Any]:
    finished = [record for record in history if record["status"] in FINISHED_STATUSES]
    durations = []
    for record in finished:
        started, ended = record.get("started_at"), record.get("completed_at") or record.get("verified_at")
        if isinstance(started, datetime) and isinstance(ended, datetime):
            durations.append((_as_utc(ended) - _as_utc(started)).total_seconds() / 60)

    categories = Counter(
        record["mission"]["category"] for record in finished if record.get("mission") and record["mission"].get("category")
    )
    return {
        "level": level,
        "completed_missions": len(finished),
        "completion_rate": round_half_up(len(finished) / len(history) * 100) if history else 0,
        "avg_minutes_per_mission": round_half_up(sum(durations) / len(durations)) if durations else DEFAULT_MINUTES_PER_MISSION,
        "preferred_category": categories.most_common(1)[0][0] if categories else DEFAULT_CATEGORY,
    }


def is_open(mission: dict[str, Any], now: datetime) -> bool:
    deadline = mission.get("deadline")
    return not isinstance(deadline, datetime) or _as_utc(deadline) >= now


def _distance(mission: dict[str, Any], latitude: float | None, longitude: float | None) -> float | None:
    if latitude is None or longitude is None or mission.get("latitude") is None or mission.get("longitude") is None:
        return None
    return calculate_distance_km(latitude, longitude, mission["latitude"], mission["longitude"])


def fallback_picks(
    candidates: list[dict[str, Any]], stats: dict[str, Any], latitude: float | None, longitude: float | None
) -> list[dict[str, Any]]:
    def rank(mission: dict[str, Any]) -> tuple:
        distance = _distance(mission, latitude, longitude)
        return (mission.get("category") != stats["preferred_category"], distance is None, distance or 0.0)

    return [
        {
            "mission_id": mission["id"],
            "fit_score": FALLBACK_FIT_SCORE,
            "reason": f"Matches your interest in {mission.get('category') or 'travel'}",
            "mission": mission,
        }
        for mission in sorted(candidates, key=rank)[:TOP_PICKS]
    ]


def parse_picks(content: str, candidates: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    AI 응답에서 후보 미션에 해당하는 추천만 남기고 fit_score 를 0~100 으로 제한합니다.

    Raises:
        ValueError: JSON 이 아니거나 유효한 추천이 하나도 없는 경우
    """
    parsed = ai_gateway.extract_json(content)
    items = parsed.get("recommendations") if isinstance(parsed, dict) else parsed
    if not isinstance(items, list):
        raise ValueError("recommendations is not a list")
    by_id = {mission["id"]: mission for mission in candidates}
    picks = []
    for item in items:
        if not isinstance(item, dict) or item.get("mission_id") not in by_id:
            continue
        try:
            score = int(item.get("fit_score", FALLBACK_FIT_SCORE))
        except (TypeError, ValueError):
            score = FALLBACK_FIT_SCORE
        picks.append(
            {
                "mission_id": item["mission_id"],
                "fit_score": max(0, min(100, score)),
                "reason": str(item.get("reason") or ""),
                "mission": by_id[item["mission_id"]],
            }
        )
    if not picks:
        raise ValueError("no valid mission recommendations")
    return sorted(picks, key=lambda pick: pick["fit_score"], reverse=True)[:TOP_PICKS]


def _messages(
    stats: dict[str, Any],
    candidates: list[dict[str, Any]],
    latitude: float | None,
    longitude: float | None,
    time_available: int | None,
) -> list[dict[str, str]]:
    missions = []
    for mission in candidates:
        distance = _distance(mission, latitude, longitude)
        missions.append(
            {
                "mission_id": mission["id"],
                "title": mission["title"],
                "category": mission.get("category"),
                "difficulty": mission.get("difficulty"),
                "xp_reward": mission["xp_reward"],
                "distance_km": round(distance, 1) if distance is not None else None,
            }
        )
    prompt = (
        f"Traveler stats: {json.dumps(stats)}. "
        f"Time available: {str(time_available) + ' minutes' if time_available else 'flexible'}.\n"
        f"Available missions: {json.dumps(missions, ensure_ascii=False)}\n"
        f"Pick the {TOP_PICKS} missions that best fit this traveler's level, pace and interests. "
        'Respond ONLY with JSON: {"recommendations": [{"mission_id": string, "fit_score": 0-100, "reason": string}]}'
    )
    return [
        {"role": "system", "content": "You are a travel mission coach who matches missions to each traveler."},
        {"role": "user", "content": prompt},
    ]


async def recommend_missions(
    db: AsyncIOMotorDatabase,
    user_id: str,
    *,
    latitude: float | None = None,
    longitude: float | None = None,
    time_available: int | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    history = await mission_service.list_my_missions(db, user_id)
    try:
        level = (await profile_service.get_profile(db, user_id))["level"]
    except HTTPException:
        level = 1
    stats = traveler_stats(level, history)

    finished_ids = {record["mission_id"] for record in history if record["status"] in FINISHED_STATUSES}
    docs = await RemoteQuery(mission_service.MISSIONS_COL, {"is_active": True}).fetch_all(db, limit=200)
    candidates = [
        mission
        for mission in map(mission_service.normalize_mission, docs)
        if mission["id"] not in finished_ids and is_open(mission, now)
    ][:MAX_CANDIDATES]
    if not candidates:
        return {"recommendations": [], "user_stats": stats, "fallback": False}

    content = await ai_gateway.complete(_messages(stats, candidates, latitude, longitude, time_available))
    try:
        picks = parse_picks(content, candidates)
    except (json.JSONDecodeError, ValueError) as exc:
        logger.warning("미션 추천 응답 파싱 실패, 기본 추천 사용: %s", exc)
        return {"recommendations": fallback_picks(candidates, stats, latitude, longitude), "user_stats": stats, "fallback": True}
    return {"recommendations": picks, "user_stats": stats, "fallback": False}
