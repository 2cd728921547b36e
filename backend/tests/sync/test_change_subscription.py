"""
변경 구독 / 쿼리 무효화 테스트
"""
import asyncio

import pytest

from backend.traveltactix.api.routes.realtime import CLOSED_EVENT, invalidation_events
from backend.traveltactix.sync.events import ChangeType, decode_message, make_event
from backend.traveltactix.sync.invalidation import InvalidationMap, InvalidationRule, default_invalidation_map
from backend.traveltactix.sync.subscription import ChangeSubscription


def test_friendship_change_invalidates_both_sides():
    rules = default_invalidation_map()
    event = make_event("friendships", ChangeType.UPDATE, {"user_id": "asha", "friend_id": "ravi"})

    assert rules.keys_for(event, "asha") == ["friends:asha"]
    assert rules.keys_for(event, "ravi") == ["friends:ravi"]
    assert rules.keys_for(event, "meera") == []


def test_new_message_only_invalidates_receiver():
    rules = default_invalidation_map()
    insert = make_event("messages", ChangeType.INSERT, {"sender_id": "asha", "receiver_id": "ravi"})
    read = make_event("messages", ChangeType.UPDATE, {"sender_id": "asha", "receiver_id": "ravi"})

    assert rules.keys_for(insert, "ravi") == ["conversations:ravi"]
    assert rules.keys_for(insert, "asha") == []
    assert rules.keys_for(read, "asha") == ["conversations:asha"]


def test_activity_insert_hits_global_and_personal_feed():
    rules = default_invalidation_map()
    event = make_event("activity_feed", ChangeType.INSERT, {"user_id": "asha"})

    assert rules.keys_for(event, "asha") == ["activity:global", "activity:personal:asha"]
    assert rules.keys_for(event, "ravi") == ["activity:global"]
    assert rules.keys_for(make_event("activity_feed", ChangeType.DELETE, {"user_id": "asha"}), "asha") == []


def test_only_keeps_selected_queries():
    rules = default_invalidation_map().only(["friends:{user_id}"])
    assert rules.tables == {"friendships"}


def test_decode_message_ignores_noise():
    assert decode_message({"type": "subscribe", "channel": "changes:places", "data": 1}) is None
    assert decode_message({"type": "message", "data": "not json"}) is None
    event = make_event("places", ChangeType.UPDATE, {"name": "x"})
    decoded = decode_message({"type": "message", "data": event.model_dump_json()})
    assert decoded.table == "places"
    assert decoded.event == ChangeType.UPDATE


@pytest.mark.asyncio
async def test_dispatch_survives_failing_handler(event_bus):
    calls = []

    async def handler(key):
        calls.append(key)
        raise RuntimeError("refetch failed")

    rules = InvalidationMap([InvalidationRule("places", "places"), InvalidationRule("places", "map")])
    subscription = ChangeSubscription(event_bus, rules, handler)

    keys = await subscription.dispatch(make_event("places", ChangeType.UPDATE, {}))

    assert keys == ["places", "map"]
    assert calls == ["places", "map"]


async def _wait_for(predicate, timeout=1.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("timed out waiting for invalidation")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_subscription_receives_published_changes(event_bus, fake_redis):
    invalidated = []

    async def handler(key):
        invalidated.append(key)

    async with ChangeSubscription(event_bus, default_invalidation_map(), handler, subscriber_id="ravi") as sub:
        assert "changes:friendships" in sub.channels
        await event_bus.publish(make_event("friendships", ChangeType.INSERT, {"user_id": "asha", "friend_id": "ravi"}))
        await event_bus.publish(make_event("messages", ChangeType.INSERT, {"sender_id": "ravi", "receiver_id": "asha"}))
        await event_bus.publish(make_event("places", ChangeType.UPDATE, {"name": "Marine Drive"}))
        await _wait_for(lambda: len(invalidated) >= 2)

    assert invalidated == ["friends:ravi", "places"]
    # 블록을 벗어나면 구독 해제
    assert fake_redis.subscribers == set()


@pytest.mark.asyncio
async def test_publish_failure_is_swallowed(event_bus, fake_redis, monkeypatch):
    async def broken_publish(channel, message):
        raise ConnectionError("redis down")

    monkeypatch.setattr(fake_redis, "publish", broken_publish)

    await event_bus.publish(make_event("places", ChangeType.UPDATE, {}))


@pytest.mark.asyncio
async def test_listener_failure_still_unsubscribes(event_bus, fake_redis):
    async def handler(key):
        pass

    async with ChangeSubscription(event_bus, default_invalidation_map(), handler, subscriber_id="ravi") as sub:
        pubsub = next(iter(fake_redis.subscribers))
        pubsub.fail(ConnectionError("redis connection lost"))
        await asyncio.wait_for(sub.wait(), timeout=1.0)

        assert sub.listening is False
        assert isinstance(sub.error, ConnectionError)

    assert pubsub.unsubscribed is True
    assert pubsub.closed is True
    assert fake_redis.subscribers == set()


@pytest.mark.asyncio
async def test_pubsub_is_closed_when_unsubscribe_fails(event_bus, fake_redis, monkeypatch):
    async def handler(key):
        pass

    async with ChangeSubscription(event_bus, default_invalidation_map(), handler) as sub:
        pubsub = next(iter(fake_redis.subscribers))

        async def broken_unsubscribe(*channels):
            raise ConnectionError("redis connection lost")

        monkeypatch.setattr(pubsub, "unsubscribe", broken_unsubscribe)
        assert sub.listening is True

    assert pubsub.closed is True


async def _connected():
    return False


async def _collect(frames):
    return [frame async for frame in frames]


@pytest.mark.asyncio
async def test_invalidation_stream_relays_keys_and_closes_with_listener(event_bus, fake_redis):
    queue: asyncio.Queue = asyncio.Queue()

    async with ChangeSubscription(event_bus, default_invalidation_map(), queue.put, subscriber_id="ravi") as sub:
        pubsub = next(iter(fake_redis.subscribers))
        frames = invalidation_events(sub, queue, _connected, keepalive=5.0)

        await event_bus.publish(make_event("friendships", ChangeType.INSERT, {"user_id": "asha", "friend_id": "ravi"}))
        first = await asyncio.wait_for(frames.__anext__(), timeout=1.0)
        assert first == 'data: {"query_key": "friends:ravi"}\n\n'

        pubsub.fail(ConnectionError("redis connection lost"))
        rest = await asyncio.wait_for(_collect(frames), timeout=1.0)

    assert rest == [CLOSED_EVENT]
    assert pubsub.unsubscribed is True


@pytest.mark.asyncio
async def test_invalidation_stream_sends_keepalive_when_idle(event_bus, fake_redis):
    queue: asyncio.Queue = asyncio.Queue()

    async with ChangeSubscription(event_bus, default_invalidation_map(), queue.put) as sub:
        frames = invalidation_events(sub, queue, _connected, keepalive=0.01)
        frame = await asyncio.wait_for(frames.__anext__(), timeout=1.0)
        await frames.aclose()

    assert frame == ": keepalive\n\n"
