"""
오프라인 지원 테스트
- 서비스 워커 캐시 정책 / 알림 클릭 / 푸시 페이로드 / 오프라인 작업 큐
"""
import httpx
import pytest

from backend.traveltactix.db.init import ensure_indexes
from backend.traveltactix.services import notifications as notification_service
from backend.traveltactix.services import offline_sync
from backend.traveltactix.services.offline_cache import resolve_click_target, strategy_for


@pytest.mark.parametrize(
    ("method", "url", "expected"),
    [
        ("POST", "/index.html", "bypass"),
        ("delete", "/api/places/1/favorite", "bypass"),
        ("GET", "/api/places", "network-only"),
        ("GET", "https://abc.supabase.co/rest/v1/places", "network-only"),
        ("GET", "https://abc.example.com/functions/v1/travel-assistant", "network-only"),
        ("GET", "/logo.png", "cache-first"),
        ("get", "/missions", "cache-first"),
    ],
)
def test_cache_strategy(method, url, expected):
    assert strategy_for(method, url) == expected


def test_notification_click_dismiss_does_nothing():
    assert resolve_click_target("dismiss", "/missions", ["http://app/missions"]) == {
        "action": "none",
        "url": None,
        "window_index": None,
    }


def test_notification_click_focuses_matching_window():
    windows = ["http://app/places?city=goa", "http://app/missions/42"]
    assert resolve_click_target("open", "/missions", windows) == {
        "action": "focus",
        "url": "http://app/missions/42",
        "window_index": 1,
    }


def test_notification_click_opens_new_window():
    assert resolve_click_target(None, "/friends", ["http://app/places"]) == {
        "action": "open",
        "url": "/friends",
        "window_index": None,
    }


def test_push_payload_defaults():
    payload = notification_service.build_push_payload({"message": "You earned 100 XP"})
    assert payload["title"] == "TravelTacTix"
    assert payload["body"] == "You earned 100 XP"
    assert payload["url"] == "/"
    assert payload["tag"] == "traveltactix-notification"
    assert [action["action"] for action in payload["actions"]] == ["open", "dismiss"]


def test_push_payload_prefers_explicit_values():
    payload = notification_service.build_push_payload(
        {"title": "Streak!", "body": "7 days", "message": "ignored", "metadata": {"url": "/streaks"}, "tag": "streak"}
    )
    assert (payload["title"], payload["body"], payload["url"], payload["tag"]) == ("Streak!", "7 days", "/streaks", "streak")
    assert notification_service.build_push_payload(None)["body"] == ""


@pytest.mark.asyncio
async def test_strategy_endpoint(client: httpx.AsyncClient):
    response = await client.get("/api/config/offline/strategy", params={"url": "/api/missions", "method": "get"})
    assert response.json() == {"method": "GET", "url": "/api/missions", "strategy": "network-only"}


@pytest.mark.asyncio
async def test_notification_click_endpoint(client: httpx.AsyncClient):
    response = await client.post(
        "/api/config/offline/notification-click",
        json={"action": "open", "url": "/missions", "open_windows": ["http://app/missions"]},
    )
    assert response.json()["action"] == "focus"


@pytest.mark.asyncio
async def test_process_pending_replays_queue_in_order(fake_db, dispatcher):
    await ensure_indexes(fake_db)
    place = await fake_db["places"].insert_one({"name": "Elephanta Caves", "city": "Mumbai"})
    place_id = str(place.inserted_id)

    await offline_sync.queue_action(dispatcher, "asha", "favorite", {"place_id": place_id})
    await offline_sync.queue_action(dispatcher, "asha", "teleport", {})
    await offline_sync.queue_action(dispatcher, "asha", "visit", {})
    await offline_sync.queue_action(dispatcher, "asha", "visit", {"place_id": place_id, "visited_at": "2026-10-18T10:00:00+00:00"})
    await offline_sync.queue_action(dispatcher, "ravi", "favorite", {"place_id": place_id})

    report = await offline_sync.process_pending(dispatcher, "asha")

    assert report["processed"] == 4
    assert report["succeeded"] == 2
    assert report["skipped"] == 1
    assert report["failed"] == 1
    assert report["errors"] == ["visit: place_id is required"]

    pending = await offline_sync.list_pending(fake_db, "asha")
    assert [(item["action_type"], item["action_data"]) for item in pending] == [("visit", {})]
    assert len(await offline_sync.list_pending(fake_db, "ravi")) == 1
    assert [doc["user_id"] for doc in fake_db["user_favorites"].docs] == ["asha"]
    assert len(fake_db["user_place_visits"].docs) == 1


@pytest.mark.asyncio
async def test_replayed_favorite_is_idempotent(fake_db, dispatcher):
    await ensure_indexes(fake_db)
    place = await fake_db["places"].insert_one({"name": "Sanjay Gandhi National Park"})
    place_id = str(place.inserted_id)

    await offline_sync.queue_action(dispatcher, "asha", "favorite", {"place_id": place_id})
    await offline_sync.queue_action(dispatcher, "asha", "favorite", {"place_id": place_id})
    await offline_sync.queue_action(dispatcher, "asha", "unfavorite", {"place_id": place_id})
    await offline_sync.queue_action(dispatcher, "asha", "unfavorite", {"place_id": place_id})

    report = await offline_sync.process_pending(dispatcher, "asha")

    assert (report["succeeded"], report["failed"]) == (4, 0)
    assert fake_db["user_favorites"].docs == []
    assert await offline_sync.list_pending(fake_db, "asha") == []


@pytest.mark.asyncio
async def test_sync_endpoints(client: httpx.AsyncClient, register):
    user = await register()

    queued = await client.post(
        "/api/sync/queue", json={"action_type": "bookmark", "action_data": {"x": 1}}, headers=user["headers"]
    )
    assert queued.status_code == 201
    assert queued.json()["synced"] is False

    report = await client.post("/api/sync/process", headers=user["headers"])
    assert report.json()["skipped"] == 1
    remaining = await client.get("/api/sync/queue", headers=user["headers"])
    assert remaining.json() == []


@pytest.mark.asyncio
async def test_notification_endpoints(client: httpx.AsyncClient, register):
    user = await register()

    created = await client.post(
        "/api/notifications/",
        json={"title": "Mission verified", "message": "+100 XP", "notification_type": "xp"},
        headers=user["headers"],
    )
    assert created.status_code == 201
    assert created.json()["body"] == "+100 XP"
    assert created.json()["tag"] == "traveltactix-notification"

    other = await client.post(
        "/api/notifications/",
        json={"user_id": "someone-else", "title": "x", "message": "y"},
        headers=user["headers"],
    )
    assert other.status_code == 400

    unread = await client.get("/api/notifications/", params={"unread_only": True}, headers=user["headers"])
    items = unread.json()["items"]
    assert [item["title"] for item in items] == ["Mission verified"]

    read_all = await client.post("/api/notifications/read-all", headers=user["headers"])
    assert read_all.status_code == 200
    after = await client.get("/api/notifications/", params={"unread_only": True}, headers=user["headers"])
    assert after.json()["items"] == []
