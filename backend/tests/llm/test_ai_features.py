"""
AI 기능 테스트
- 일정 생성 / 숨은 명소 추천 / 여행 도우미 스트리밍 / 요청 제한
"""
import json

import httpx
import pytest
from fastapi import HTTPException

from backend.traveltactix.services import ai as ai_service
from backend.traveltactix.services import ai_gateway
from backend.traveltactix.services.rate_limit import check_rate_limit
from backend.traveltactix.services.recommendation_cache import RecommendationCache


def _reply_with(content: str, calls: list | None = None):
    async def complete(messages, **_kwargs):
        if calls is not None:
            calls.append(messages)
        return content

    return complete


@pytest.mark.asyncio
async def test_itinerary_costs_are_converted_to_inr(monkeypatch):
    raw = {
        "days": [
            {
                "day": 1,
                "theme": "Old Goa",
                "activities": [
                    {"time": "09:00", "title": "Basilica of Bom Jesus", "estimated_cost_usd": 0},
                    {"time": "13:00", "title": "Goan thali", "estimated_cost_usd": 12.5},
                ],
            },
            {"activities": [{"title": "Spice farm", "estimated_cost_usd": "30"}]},
        ],
        "tips": ["Carry cash"],
    }
    monkeypatch.setattr(ai_gateway, "complete", _reply_with(f"```json\n{json.dumps(raw)}\n```"))

    itinerary = await ai_service.generate_itinerary({"destination": "Goa", "days": 2, "budget": "budget"})

    first, second = itinerary["days"]
    assert first["activities"][1]["estimated_cost_inr"] == "₹1,038"
    assert second["day"] == 2
    assert second["activities"][0]["estimated_cost_inr"] == "₹2,490"
    assert itinerary["total_estimated_cost_inr"] == "₹3,528"
    assert itinerary["tips"] == ["Carry cash"]


@pytest.mark.asyncio
async def test_itinerary_parse_failure_is_bad_gateway(monkeypatch):
    monkeypatch.setattr(ai_gateway, "complete", _reply_with("Sorry, I cannot help with that."))

    with pytest.raises(HTTPException) as exc:
        await ai_service.generate_itinerary({"destination": "Goa", "days": 1})
    assert exc.value.status_code == 502


async def _seed_gems(fake_db, count: int = 7) -> list[str]:
    ids = []
    for index in range(count):
        result = await fake_db["places"].insert_one(
            {"name": f"Gem {index}", "city": "Goa", "category": "beach", "is_hidden_gem": True, "mood_tags": ["calm"]}
        )
        ids.append(str(result.inserted_id))
    await fake_db["places"].insert_one({"name": "Baga Beach", "city": "Goa", "is_hidden_gem": False})
    return ids


@pytest.mark.asyncio
async def test_recommendations_fall_back_when_ai_reply_is_invalid(fake_db, fake_redis, monkeypatch):
    ids = await _seed_gems(fake_db)
    await fake_db["user_place_visits"].insert_one({"user_id": "asha", "place_id": ids[0]})
    cache = RecommendationCache(fake_redis)
    monkeypatch.setattr(ai_gateway, "complete", _reply_with("Try the beaches!"))

    result = await ai_service.get_recommendations(fake_db, cache, "asha")

    assert result["fallback"] is True
    assert [item["name"] for item in result["recommendations"]] == ["Gem 1", "Gem 2", "Gem 3", "Gem 4", "Gem 5"]
    assert {item["match_score"] for item in result["recommendations"]} == {75}
    # 기본 추천은 캐시하지 않음
    assert fake_redis.store == {}


@pytest.mark.asyncio
async def test_recommendations_are_cached_per_user(fake_db, fake_redis, monkeypatch):
    ids = await _seed_gems(fake_db, count=3)
    cache = RecommendationCache(fake_redis)
    calls: list = []
    reply = {
        "recommendations": [
            {"place_id": ids[2], "match_score": 91, "reason": "Quiet sunsets"},
            {"place_id": "unknown-place", "match_score": 99, "reason": "hallucinated"},
            {"place_id": ids[1], "match_score": 140, "reason": "Great food"},
        ]
    }
    monkeypatch.setattr(ai_gateway, "complete", _reply_with(json.dumps(reply), calls))

    first = await ai_service.get_recommendations(fake_db, cache, "asha", mood="calm")
    second = await ai_service.get_recommendations(fake_db, cache, "asha", mood="calm")

    assert first["cached"] is False
    assert [(item["place_id"], item["match_score"]) for item in first["recommendations"]] == [
        (ids[1], 100),
        (ids[2], 91),
    ]
    assert second["cached"] is True
    assert [item["place_id"] for item in second["recommendations"]] == [ids[1], ids[2]]
    assert len(calls) == 1

    refreshed = await ai_service.get_recommendations(fake_db, cache, "asha", mood="calm", refresh=True)
    assert refreshed["cached"] is False
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_recommendations_without_candidates_skip_ai(fake_db, fake_redis):
    # 후보가 없으면 게이트웨이를 부르지 않음 (기본 fixture 는 호출 시 502)
    result = await ai_service.get_recommendations(fake_db, RecommendationCache(fake_redis), "asha")
    assert result == {"recommendations": [], "cached": False, "fallback": False}


def test_system_prompt_mentions_traveler_context():
    prompt = ai_service.build_system_prompt(
        {"full_name": "Asha", "level": 3, "total_xp": 2400},
        [{"status": "verified", "mission": {"title": "Sunrise at Marine Drive"}}],
        [{"name": "Banganga Tank"}],
    )
    assert "Asha, level 3 with 2400 XP" in prompt
    assert "Sunrise at Marine Drive (verified)" in prompt
    assert "Banganga Tank" in prompt
    assert "₹" in prompt


def _stream_of(lines: list[str]):
    async def stream(messages, **_kwargs):
        async def relay():
            for line in lines:
                yield line

        return relay()

    return stream


@pytest.mark.asyncio
async def test_assistant_streams_and_saves_conversation(client: httpx.AsyncClient, register, fake_db, monkeypatch):
    user = await register()
    monkeypatch.setattr(
        ai_gateway,
        "stream",
        _stream_of(
            [
                "data: " + json.dumps({"choices": [{"delta": {"content": "Hello "}}]}),
                "",
                "data: " + json.dumps({"choices": [{"delta": {"content": "there"}}]}),
                "",
            ]
        ),
    )

    response = await client.post(
        "/api/ai/assistant",
        json={"messages": [{"role": "user", "content": "Plan a day in Mumbai"}]},
        headers=user["headers"],
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["X-RateLimit-Limit"] == "30"
    assert response.headers["X-RateLimit-Remaining"] == "29"
    assert response.text.rstrip().endswith("data: [DONE]")

    saved = fake_db["ai_conversations"].docs
    assert len(saved) == 1
    assert saved[0]["title"] == "Plan a day in Mumbai"
    assert saved[0]["messages"][-1] == {"role": "assistant", "content": "Hello there"}

    listed = await client.get("/api/ai/conversations", headers=user["headers"])
    assert [item["title"] for item in listed.json()] == ["Plan a day in Mumbai"]


@pytest.mark.asyncio
async def test_assistant_surfaces_gateway_rate_limit(client: httpx.AsyncClient, register, monkeypatch):
    user = await register()

    async def limited(*_args, **_kwargs):
        raise HTTPException(status_code=429, detail="AI rate limit exceeded")

    monkeypatch.setattr(ai_gateway, "stream", limited)

    response = await client.post(
        "/api/ai/assistant", json={"messages": [{"role": "user", "content": "hi"}]}, headers=user["headers"]
    )

    assert response.status_code == 429
    assert response.json() == {"error": "AI rate limit exceeded"}


@pytest.mark.asyncio
async def test_assistant_request_limit(client: httpx.AsyncClient, register, fake_redis):
    user = await register()
    await fake_redis.set(f"ratelimit:travel-assistant:{user['user_id']}", "30")

    response = await client.post(
        "/api/ai/assistant", json={"messages": [{"role": "user", "content": "hi"}]}, headers=user["headers"]
    )

    assert response.status_code == 429
    assert response.json()["error"].startswith("Rate limit exceeded: 31/30")
    assert response.headers["X-RateLimit-Limit"] == "30"
    assert response.headers["X-RateLimit-Remaining"] == "0"


@pytest.mark.asyncio
async def test_rate_limit_window(fake_redis):
    results = [await check_rate_limit(fake_redis, "asha", "ai-recommendations", 2, 60) for _ in range(3)]

    assert [r.allowed for r in results] == [True, True, False]
    assert [r.remaining for r in results] == [1, 0, 0]
    assert fake_redis.ttls["ratelimit:ai-recommendations:asha"] == 3600
    other = await check_rate_limit(fake_redis, "ravi", "ai-recommendations", 2, 60)
    assert other.allowed is True


@pytest.mark.asyncio
async def test_assistant_closes_gateway_stream_when_client_leaves(fake_db, monkeypatch):
    upstream = {"closed": False}

    async def stream(messages, **_kwargs):
        async def relay():
            try:
                yield "data: " + json.dumps({"choices": [{"delta": {"content": "Start at "}}]})
                yield "data: " + json.dumps({"choices": [{"delta": {"content": "Howrah Bridge"}}]})
                yield "data: [DONE]"
            finally:
                upstream["closed"] = True

        return relay()

    monkeypatch.setattr(ai_gateway, "stream", stream)
    messages = [{"role": "user", "content": "Kolkata walk"}]

    frames = await ai_service.open_assistant_stream(fake_db, "asha", messages)
    first = await frames.__anext__()
    second = await frames.__anext__()
    await frames.aclose()

    assert first.startswith("data: ")
    assert "Howrah Bridge" in second
    assert upstream["closed"] is True
    saved = fake_db["ai_conversations"].docs
    assert len(saved) == 1
    assert saved[0]["messages"][-1] == {"role": "assistant", "content": "Start at "}
