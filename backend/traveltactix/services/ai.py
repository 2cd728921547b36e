"""
AI 기능: 여행 일정 생성, 숨은 명소 추천, 여행 도우미 스트리밍

모든 호출은 OpenAI 호환 게이트웨이(ai_gateway)를 거칩니다.
"""
from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from . import ai_gateway
from . import missions as mission_service
from . import places as place_service
from . import profiles as profile_service
from .conversations import ConversationAutosave
from .pricing import format_inr, usd_to_inr
from .recommendation_cache import RecommendationCache

logger = logging.getLogger(__name__)

FALLBACK_MATCH_SCORE = 75
FALLBACK_COUNT = 5
MAX_CANDIDATES = 30


# ---------------------------------------------------------------------------
# 일정 생성


def _itinerary_messages(payload: dict[str, Any]) -> list[dict[str, str]]:
    interests = ", ".join(payload.get("interests") or []) or "general sightseeing"
    style = payload.get("travel_style") or "balanced"
    prompt = (
        f"Create a {payload['days']}-day travel itinerary for {payload['destination']}. "
        f"Budget level: {payload.get('budget', 'moderate')}. Interests: {interests}. Travel style: {style}. "
        "Respond ONLY with JSON: "
        '{"days": [{"day": 1, "theme": string, "activities": [{"time": "09:00", "title": string, '
        '"description": string, "location": string, "estimated_cost_usd": number}]}], "tips": [string]}'
    )
    return [
        {"role": "system", "content": "You are an expert travel planner. Always answer with valid JSON."},
        {"role": "user", "content": prompt},
    ]


def _cost(value: Any) -> float:
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return 0.0


def normalize_itinerary(destination: str, raw: dict[str, Any]) -> dict[str, Any]:
    """AI 응답을 정리하고 모든 비용을 INR 로 표기합니다."""
    days: list[dict[str, Any]] = []
    total_inr = 0
    for index, day in enumerate(raw.get("days") or [], start=1):
        activities = []
        for activity in day.get("activities") or []:
            usd = _cost(activity.get("estimated_cost_usd"))
            inr = usd_to_inr(usd)
            total_inr += inr
            activities.append(
                {
                    "time": str(activity.get("time") or ""),
                    "title": str(activity.get("title") or ""),
                    "description": str(activity.get("description") or ""),
                    "location": activity.get("location"),
                    "estimated_cost_usd": usd,
                    "estimated_cost_inr": format_inr(inr),
                }
            )
        days.append({"day": day.get("day") or index, "theme": day.get("theme"), "activities": activities})
    return {
        "destination": destination,
        "days": days,
        "total_estimated_cost_inr": format_inr(total_inr),
        "tips": [str(tip) for tip in raw.get("tips") or []],
    }


async def generate_itinerary(payload: dict[str, Any]) -> dict[str, Any]:
    content = await ai_gateway.complete(_itinerary_messages(payload))
    try:
        raw = ai_gateway.extract_json(content)
    except (json.JSONDecodeError, ValueError) as exc:
        logger.error("일정 응답 파싱 실패: %s", exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to parse itinerary") from exc
    if not isinstance(raw, dict):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to parse itinerary")
    return normalize_itinerary(payload["destination"], raw)


# ---------------------------------------------------------------------------
# 숨은 명소 추천


def recommendation_feature(city: str | None, mood: str | None) -> str:
    return f"hidden_gems:{(city or 'all').lower()}:{(mood or 'any').lower()}"


def fallback_recommendations(candidates: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "place_id": place["id"],
            "name": place["name"],
            "match_score": FALLBACK_MATCH_SCORE,
            "reason": "A hidden gem you haven't visited yet",
            "place": place,
        }
        for place in candidates[:FALLBACK_COUNT]
    ]


def parse_recommendations(content: str, candidates: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    AI 응답에서 후보 장소에 해당하는 추천만 추립니다.

    Raises:
        ValueError: JSON 이 아니거나 유효한 추천이 하나도 없는 경우
    """
    parsed = ai_gateway.extract_json(content)
    items = parsed.get("recommendations") if isinstance(parsed, dict) else parsed
    if not isinstance(items, list):
        raise ValueError("recommendations is not a list")
    by_id = {place["id"]: place for place in candidates}
    results = []
    for item in items:
        if not isinstance(item, dict) or item.get("place_id") not in by_id:
            continue
        place = by_id[item["place_id"]]
        try:
            score = int(item.get("match_score", FALLBACK_MATCH_SCORE))
        except (TypeError, ValueError):
            score = FALLBACK_MATCH_SCORE
        results.append(
            {
                "place_id": place["id"],
                "name": place["name"],
                "match_score": max(0, min(100, score)),
                "reason": str(item.get("reason") or ""),
                "place": place,
            }
        )
    if not results:
        raise ValueError("no valid recommendations")
    return sorted(results, key=lambda item: item["match_score"], reverse=True)


def _recommendation_messages(
    profile: dict[str, Any] | None, favorites: list[dict[str, Any]], candidates: list[dict[str, Any]], mood: str | None
) -> list[dict[str, str]]:
    places = [
        {"place_id": p["id"], "name": p["name"], "city": p["city"], "category": p["category"], "mood_tags": p["mood_tags"]}
        for p in candidates
    ]
    liked = ", ".join(place["name"] for place in favorites[:10]) or "none yet"
    level = profile["level"] if profile else 1
    prompt = (
        f"Traveler level: {level}. Favorite places: {liked}. Current mood: {mood or 'any'}.\n"
        f"Candidate hidden gems: {json.dumps(places, ensure_ascii=False)}\n"
        "Pick up to 5 places that best match this traveler. Respond ONLY with JSON: "
        '{"recommendations": [{"place_id": string, "match_score": 0-100, "reason": string}]}'
    )
    return [
        {"role": "system", "content": "You recommend hidden travel gems tailored to each traveler."},
        {"role": "user", "content": prompt},
    ]


async def get_recommendations(
    db: AsyncIOMotorDatabase,
    cache: RecommendationCache,
    user_id: str,
    *,
    city: str | None = None,
    mood: str | None = None,
    refresh: bool = False,
) -> dict[str, Any]:
    feature = recommendation_feature(city, mood)
    if not refresh:
        cached = await cache.get(feature, user_id)
        if cached is not None:
            return {"recommendations": cached, "cached": True, "fallback": False}

    visited = await place_service.visited_place_ids(db, user_id)
    page = await place_service.list_places(db, user_id, city=city, hidden_gem=True, limit=100)
    candidates = [place for place in page.items if place["id"] not in visited][:MAX_CANDIDATES]
    if not candidates:
        return {"recommendations": [], "cached": False, "fallback": False}

    try:
        profile = await profile_service.get_profile(db, user_id)
    except HTTPException:
        profile = None
    favorites = await place_service.list_favorites(db, user_id)

    content = await ai_gateway.complete(_recommendation_messages(profile, favorites, candidates, mood))
    try:
        recommendations = parse_recommendations(content, candidates)
    except (json.JSONDecodeError, ValueError) as exc:
        logger.warning("추천 응답 파싱 실패, 기본 추천 사용: %s", exc)
        return {"recommendations": fallback_recommendations(candidates), "cached": False, "fallback": True}

    await cache.set(feature, recommendations, user_id)
    return {"recommendations": recommendations, "cached": False, "fallback": False}


# ---------------------------------------------------------------------------
# 여행 도우미


def build_system_prompt(
    profile: dict[str, Any] | None,
    recent_missions: list[dict[str, Any]],
    favorites: list[dict[str, Any]],
) -> str:
    lines = [
        "You are TravelTacTix's friendly travel assistant.",
        "Help the traveler plan trips, discover hidden gems and complete travel missions.",
        "Keep answers concise and practical. Quote prices in Indian Rupees (₹) when relevant.",
    ]
    if profile:
        lines.append(
            f"Traveler: {profile.get('full_name') or 'Traveler'}, level {profile.get('level', 1)} "
            f"with {profile.get('total_xp', 0)} XP."
        )
    if recent_missions:
        titles = [
            f"{item['mission']['title']} ({item['status']})" for item in recent_missions if item.get("mission")
        ]
        if titles:
            lines.append("Recent missions: " + "; ".join(titles) + ".")
    if favorites:
        lines.append("Favorite places: " + ", ".join(place["name"] for place in favorites) + ".")
    return "\n".join(lines)


async def assistant_context(db: AsyncIOMotorDatabase, user_id: str) -> str:
    try:
        profile = await profile_service.get_profile(db, user_id)
    except HTTPException:
        profile = None
    recent = (await mission_service.list_my_missions(db, user_id))[:5]
    favorites = (await place_service.list_favorites(db, user_id))[:5]
    return build_system_prompt(profile, recent, favorites)


async def open_assistant_stream(
    db: AsyncIOMotorDatabase,
    user_id: str,
    messages: list[dict[str, str]],
    conversation_id: str | None = None,
) -> AsyncIterator[str]:
    """
    게이트웨이 스트림을 연 뒤, 받은 SSE 줄을 그대로 내보내는 제너레이터를 돌려줍니다.

    게이트웨이 오류(429 등)는 스트림을 열 때 예외로 올라오므로 응답 시작 전에 처리됩니다.
    응답 내용은 디바운스하여 대화 기록에 저장하고 스트림 종료 시 마지막으로 저장합니다.
    """
    system_prompt = await assistant_context(db, user_id)
    lines = await ai_gateway.stream([{"role": "system", "content": system_prompt}, *messages])
    autosave = ConversationAutosave(db, user_id, conversation_id)

    async def relay() -> AsyncIterator[str]:
        reply: list[str] = []
        done = False
        try:
            async for line in lines:
                yield f"{line}\n"
                if done:
                    continue
                chunks, done = ai_gateway.parse_sse_lines([line])
                if chunks:
                    reply.extend(chunks)
                    autosave.push([*messages, {"role": "assistant", "content": "".join(reply)}])
            if not done:
                yield f"data: {ai_gateway.DONE_MARKER}\n\n"
        finally:
            # 클라이언트가 먼저 끊어도 게이트웨이 연결을 바로 닫음
            try:
                await lines.aclose()
            finally:
                final = [*messages]
                if reply:
                    final.append({"role": "assistant", "content": "".join(reply)})
                autosave.push(final)
                await autosave.flush()

    return relay()
