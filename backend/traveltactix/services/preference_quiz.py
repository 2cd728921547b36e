"""
여행 취향 설문 → 맞춤 숨은 명소 추천

1단계: 설문 문항 5개 생성 (AI 응답을 못 쓰면 기본 문항)
2단계: 답변 + 지역 인기 동향으로 방문/즐겨찾기하지 않은 숨은 명소 추천
"""
from __future__ import annotations

import json
import logging
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from ..sync.query import RemoteQuery
from . import ai_gateway
from . import places as place_service

logger = logging.getLogger(__name__)

QUESTION_COUNT = 5
MAX_CANDIDATES = 30
TRENDING_COUNT = 3
FALLBACK_COUNT = 5
FALLBACK_MATCH_SCORE = 75
FALLBACK_REASON = "Based on your travel preferences and current trends"
FALLBACK_HIGHLIGHT = "Authentic offbeat experience"

DEFAULT_QUESTIONS: list[dict[str, Any]] = [
    {
        "id": "q1",
        "question": "What type of travel experience do you prefer?",
        "options": ["Adventure & Exploration", "Cultural Immersion", "Relaxation & Leisure", "Food & Culinary"],
    },
    {
        "id": "q2",
        "question": "What's your ideal travel pace?",
        "options": ["Packed itinerary", "Balanced schedule", "Slow travel", "Go with the flow"],
    },
    {
        "id": "q3",
        "question": "How do you feel about crowds?",
        "options": ["Love popular attractions", "Some crowds okay", "Prefer quiet places", "Hidden gems only"],
    },
    {
        "id": "q4",
        "question": "What's your budget preference?",
        "options": ["Budget-friendly", "Moderate spending", "Comfortable budget", "Luxury experiences"],
    },
    {
        "id": "q5",
        "question": "What draws you most to a destination?",
        "options": ["Natural beauty", "Historical sites", "Local culture", "Unique experiences"],
    },
]

_QUESTION_PROMPT = (
    f"Generate {QUESTION_COUNT} engaging multiple-choice questions to understand a traveler's preferences. "
    "Cover travel style, budget, crowd tolerance, activity level and cultural interests. "
    'Respond ONLY with JSON: [{"id": "q1", "question": string, "options": [string, string, string, string]}]'
)


def parse_questions(content: str) -> list[dict[str, Any]]:
    parsed = ai_gateway.extract_json(content)
    items = parsed.get("questions") if isinstance(parsed, dict) else parsed
    if not isinstance(items, list):
        raise ValueError("questions is not a list")
    questions = []
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict) or not item.get("question"):
            continue
        options = [str(option) for option in item.get("options") or [] if option]
        if len(options) < 2:
            continue
        questions.append({"id": str(item.get("id") or f"q{index}"), "question": str(item["question"]), "options": options})
    if not questions:
        raise ValueError("no usable questions")
    return questions[:QUESTION_COUNT]


async def generate_questions() -> dict[str, Any]:
    content = await ai_gateway.complete(
        [
            {"role": "system", "content": "You are a travel advisor who designs short preference questionnaires."},
            {"role": "user", "content": _QUESTION_PROMPT},
        ]
    )
    try:
        return {"questions": parse_questions(content), "fallback": False}
    except (json.JSONDecodeError, ValueError) as exc:
        logger.warning("설문 문항 파싱 실패, 기본 문항 사용: %s", exc)
        return {"questions": DEFAULT_QUESTIONS, "fallback": True}


async def trending_summary(db: AsyncIOMotorDatabase, city: str | None) -> str:
    """가장 붐비는 장소들로 지역 인기 동향 문장을 만듭니다."""
    query: dict[str, Any] = {"crowd_status": {"$in": ["high", "medium"]}}
    if city:
        query["city"] = city
    docs = await RemoteQuery(place_service.PLACES_COL, query, sort=[("crowd_percentage", -1)]).fetch_all(
        db, limit=TRENDING_COUNT
    )
    if not docs:
        return "No trend data available"
    return "Currently popular: " + ", ".join(doc.get("name", "") for doc in docs)


def fallback_picks(candidates: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "place_id": place["id"],
            "name": place["name"],
            "match_score": FALLBACK_MATCH_SCORE,
            "reason": FALLBACK_REASON,
            "unique_highlight": FALLBACK_HIGHLIGHT,
            "place": place,
        }
        for place in candidates[:FALLBACK_COUNT]
    ]


def parse_picks(content: str, candidates: list[dict[str, Any]]) -> list[dict[str, Any]]:
    parsed = ai_gateway.extract_json(content)
    items = parsed.get("recommendations") if isinstance(parsed, dict) else parsed
    if not isinstance(items, list):
        raise ValueError("recommendations is not a list")
    by_id = {place["id"]: place for place in candidates}
    picks = []
    for item in items:
        if not isinstance(item, dict) or item.get("place_id") not in by_id:
            continue
        place = by_id[item["place_id"]]
        try:
            score = int(item.get("match_score", FALLBACK_MATCH_SCORE))
        except (TypeError, ValueError):
            score = FALLBACK_MATCH_SCORE
        picks.append(
            {
                "place_id": place["id"],
                "name": place["name"],
                "match_score": max(0, min(100, score)),
                "reason": str(item.get("reason") or ""),
                "unique_highlight": str(item.get("unique_highlight") or ""),
                "place": place,
            }
        )
    if not picks:
        raise ValueError("no valid recommendations")
    return sorted(picks, key=lambda pick: pick["match_score"], reverse=True)[:FALLBACK_COUNT]


def _pick_messages(answers: list[dict[str, str]], trends: str, candidates: list[dict[str, Any]]) -> list[dict[str, str]]:
    preferences = "\n".join(f"- {item['question']}: {item['answer']}" for item in answers) or "- no answers"
    places = [
        {"place_id": p["id"], "name": p["name"], "city": p["city"], "category": p["category"], "mood_tags": p["mood_tags"]}
        for p in candidates
    ]
    prompt = (
        f"Traveler preferences from a questionnaire:\n{preferences}\n"
        f"Local trends: {trends}\n"
        f"Candidate hidden gems: {json.dumps(places, ensure_ascii=False)}\n"
        f"Pick up to {FALLBACK_COUNT} places for this traveler. Respond ONLY with JSON: "
        '{"recommendations": [{"place_id": string, "match_score": 0-100, "reason": string, "unique_highlight": string}]}'
    )
    return [
        {"role": "system", "content": "You recommend offbeat travel experiences that match a traveler's answers."},
        {"role": "user", "content": prompt},
    ]


async def recommend_from_answers(
    db: AsyncIOMotorDatabase, user_id: str, answers: list[dict[str, str]], city: str | None = None
) -> dict[str, Any]:
    excluded = await place_service.visited_place_ids(db, user_id) | await place_service.favorite_place_ids(db, user_id)
    page = await place_service.list_places(db, user_id, city=city, hidden_gem=True, limit=100)
    candidates = [place for place in page.items if place["id"] not in excluded][:MAX_CANDIDATES]
    trends = await trending_summary(db, city)
    if not candidates:
        return {"recommendations": [], "trends": trends, "fallback": False}

    content = await ai_gateway.complete(_pick_messages(answers, trends, candidates))
    try:
        picks = parse_picks(content, candidates)
    except (json.JSONDecodeError, ValueError) as exc:
        logger.warning("설문 기반 추천 파싱 실패, 기본 추천 사용: %s", exc)
        return {"recommendations": fallback_picks(candidates), "trends": trends, "fallback": True}
    return {"recommendations": picks, "trends": trends, "fallback": False}
