"""
친구 / 메시지 / 활동 피드 테스트
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from backend.traveltactix.db.init import ensure_indexes
from backend.traveltactix.services import activity as activity_service
from backend.traveltactix.services import friends as friend_service
from backend.traveltactix.services import messages as message_service
from backend.traveltactix.services import profiles as profile_service

BASE = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


async def _people(fake_db, *names: str) -> None:
    await ensure_indexes(fake_db)
    for name in names:
        await profile_service.create_profile(fake_db, name, name.title())


@pytest.mark.asyncio
async def test_friend_request_accept_flow(fake_db, dispatcher):
    await _people(fake_db, "asha", "ravi")

    request = await friend_service.send_request(dispatcher, "asha", "ravi")
    assert request["status"] == "pending"

    ravi_view = await friend_service.get_friends_overview(fake_db, "ravi")
    assert [item["id"] for item in ravi_view["pending_requests"]] == [request["id"]]
    assert ravi_view["pending_requests"][0]["profile"]["full_name"] == "Asha"
    assert ravi_view["sent_requests"] == []

    # 보낸 사람은 수락할 수 없음
    with pytest.raises(HTTPException) as exc:
        await friend_service.accept_request(dispatcher, "asha", request["id"])
    assert exc.value.status_code == 404

    accepted = await friend_service.accept_request(dispatcher, "ravi", request["id"])
    assert accepted["status"] == "accepted"

    asha_view = await friend_service.get_friends_overview(fake_db, "asha")
    assert asha_view["friends"][0]["profile"]["full_name"] == "Ravi"
    added = sorted(doc["user_id"] for doc in fake_db["activity_feed"].docs)
    assert added == ["asha", "ravi"]


@pytest.mark.asyncio
async def test_duplicate_requests_conflict_in_both_directions(fake_db, dispatcher):
    await _people(fake_db, "asha", "ravi")
    await friend_service.send_request(dispatcher, "asha", "ravi")

    for sender, receiver in (("asha", "ravi"), ("ravi", "asha")):
        with pytest.raises(HTTPException) as exc:
            await friend_service.send_request(dispatcher, sender, receiver)
        assert exc.value.status_code == 409
        assert exc.value.detail == "Friend request already exists"


@pytest.mark.asyncio
async def test_friend_request_validation(fake_db, dispatcher):
    await _people(fake_db, "asha")

    with pytest.raises(HTTPException) as self_request:
        await friend_service.send_request(dispatcher, "asha", "asha")
    assert self_request.value.status_code == 400

    with pytest.raises(HTTPException) as unknown:
        await friend_service.send_request(dispatcher, "asha", "nobody")
    assert unknown.value.status_code == 404


@pytest.mark.asyncio
async def test_block_replaces_incoming_request(fake_db, dispatcher):
    await _people(fake_db, "asha", "ravi")
    await friend_service.send_request(dispatcher, "ravi", "asha")

    blocked = await friend_service.block_user(dispatcher, "asha", "ravi")

    assert blocked["status"] == "blocked"
    assert blocked["user_id"] == "asha"
    assert len(fake_db["friendships"].docs) == 1
    overview = await friend_service.get_friends_overview(fake_db, "asha")
    assert overview == {"friends": [], "pending_requests": [], "sent_requests": []}


def _message(sender: str, receiver: str, minutes: int, is_read: bool = False) -> dict:
    return {
        "id": f"{sender}-{receiver}-{minutes}",
        "sender_id": sender,
        "receiver_id": receiver,
        "content": "hi",
        "is_read": is_read,
        "created_at": BASE + timedelta(minutes=minutes),
    }


def test_group_conversations_by_partner():
    messages = [
        _message("ravi", "asha", 1),
        _message("asha", "ravi", 2),
        _message("ravi", "asha", 3),
        _message("meera", "asha", 5, is_read=True),
        _message("asha", "dev", 4),
    ]

    conversations = message_service.group_conversations(messages, "asha")

    assert [c["partner_id"] for c in conversations] == ["meera", "dev", "ravi"]
    by_partner = {c["partner_id"]: c for c in conversations}
    assert by_partner["ravi"]["unread_count"] == 2
    assert by_partner["ravi"]["last_message"]["id"] == "ravi-asha-3"
    assert by_partner["meera"]["unread_count"] == 0
    # 내가 보낸 메시지는 안 읽음 수에 포함하지 않음
    assert by_partner["dev"]["unread_count"] == 0


@pytest.mark.asyncio
async def test_messages_thread_and_read_marking(fake_db, dispatcher, fake_redis):
    await _people(fake_db, "asha")

    await message_service.send_message(dispatcher, "ravi", "asha", "  Namaste!  ")
    await message_service.send_message(dispatcher, "asha", "ravi", "Hello")

    conversations = await message_service.list_conversations(fake_db, "asha")
    assert len(conversations) == 1
    # 프로필이 없는 상대는 Unknown 으로 표시
    assert conversations[0]["partner"]["full_name"] == "Unknown"

    thread = await message_service.get_thread(fake_db, "asha", "ravi")
    assert [m["content"] for m in thread.items] == ["Namaste!", "Hello"]
    assert thread.has_more is False

    marked = await message_service.mark_thread_read(dispatcher, "asha", "ravi")
    assert marked == 1
    assert await message_service.mark_thread_read(dispatcher, "asha", "ravi") == 0
    read_events = [m for c, m in fake_redis.published if c == "changes:messages" and '"UPDATE"' in m]
    assert len(read_events) == 1


@pytest.mark.asyncio
async def test_empty_message_is_rejected(dispatcher):
    with pytest.raises(HTTPException) as exc:
        await message_service.send_message(dispatcher, "asha", "ravi", "   ")
    assert exc.value.status_code == 400


def test_activity_icons():
    assert activity_service.activity_icon("mission_completed") == "🎯"
    assert activity_service.activity_icon("streak_milestone") == "🔥"
    assert activity_service.activity_icon("something_new") == "📣"


@pytest.mark.asyncio
async def test_activity_feed_scopes(fake_db, dispatcher):
    await _people(fake_db, "asha", "ravi")
    await activity_service.post_activity(dispatcher, "asha", "place_visited", "Visited Elephanta")
    await activity_service.post_activity(dispatcher, "ravi", "badge_earned", "Explorer", is_public=False)
    await activity_service.post_activity(dispatcher, "meera", "level_up", "Level 2")

    global_feed = await activity_service.list_feed(fake_db, "asha", "global")
    assert {item["title"] for item in global_feed.items} == {"Visited Elephanta", "Level 2"}
    unknown = next(item for item in global_feed.items if item["user_id"] == "meera")
    assert unknown["profile"]["full_name"] == "Unknown"

    personal = await activity_service.list_feed(fake_db, "ravi", "personal")
    assert [item["title"] for item in personal.items] == ["Explorer"]
    assert personal.items[0]["icon"] == "🏆"

    assert (await activity_service.list_feed(fake_db, "asha", "friends")).items == []
