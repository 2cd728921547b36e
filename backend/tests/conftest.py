from __future__ import annotations

import asyncio
import copy
import fnmatch
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import httpx
import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT))

from backend.traveltactix.db.mongo import MongoConnectionManager  # noqa: E402
from backend.traveltactix.db.redis import RedisConnectionManager  # noqa: E402
from backend.traveltactix.sync.events import EventBus  # noqa: E402
from backend.traveltactix.sync.mutation import MutationDispatcher  # noqa: E402


# ---------------------------------------------------------------------------
# MongoDB (Motor) 인메모리 대체


def _sort_value(value: Any) -> tuple:
    return (0,) if value is None else (1, value)


def _matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    for key, condition in query.items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in condition):
                return False
            continue
        value = doc.get(key)
        if isinstance(condition, dict) and condition and all(op.startswith("$") for op in condition):
            for op, arg in condition.items():
                if op == "$in" and value not in arg:
                    return False
                if op == "$nin" and value in arg:
                    return False
                if op == "$ne" and value == arg:
                    return False
        elif value != condition:
            return False
    return True


def _project(doc: dict[str, Any], projection: dict[str, Any] | None) -> dict[str, Any]:
    doc = copy.deepcopy(doc)
    if not projection:
        return doc
    include = [name for name, flag in projection.items() if flag and name != "_id"]
    if include:
        result = {name: doc[name] for name in include if name in doc}
        if projection.get("_id", 1) and "_id" in doc:
            result["_id"] = doc["_id"]
        return result
    return {name: value for name, value in doc.items() if projection.get(name, 1)}


class _FakeCursor:
    def __init__(self, docs: list[dict[str, Any]]) -> None:
        self._docs = docs
        self._skip = 0
        self._limit = 0

    def sort(self, key_or_list: Any, direction: int | None = None) -> "_FakeCursor":
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction or 1)]
        for name, order in reversed(keys):
            self._docs.sort(key=lambda doc: _sort_value(doc.get(name)), reverse=order < 0)
        return self

    def skip(self, count: int) -> "_FakeCursor":
        self._skip = count
        return self

    def limit(self, count: int) -> "_FakeCursor":
        self._limit = count
        return self

    def __aiter__(self):
        end = self._skip + self._limit if self._limit else None
        self._iter = iter(self._docs[self._skip:end])
        return self

    async def __anext__(self) -> dict[str, Any]:
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration from None


class FakeCollection:
    def __init__(self) -> None:
        self.docs: list[dict[str, Any]] = []
        self.unique_indexes: list[tuple[str, ...]] = []

    async def create_index(self, keys: Any, unique: bool = False, **_kwargs: Any) -> str:
        fields = (keys,) if isinstance(keys, str) else tuple(name for name, _ in keys)
        if unique and fields not in self.unique_indexes:
            self.unique_indexes.append(fields)
        return "_".join(fields)

    def _check_unique(self, candidate: dict[str, Any]) -> None:
        for fields in self.unique_indexes:
            for doc in self.docs:
                if doc is not candidate and all(doc.get(name) == candidate.get(name) for name in fields):
                    raise DuplicateKeyError("E11000 duplicate key error", 11000)

    def _find(self, query: dict[str, Any]) -> list[dict[str, Any]]:
        return [doc for doc in self.docs if _matches(doc, query)]

    def find(self, query: dict[str, Any] | None = None, projection: dict[str, Any] | None = None) -> _FakeCursor:
        return _FakeCursor([_project(doc, projection) for doc in self._find(query or {})])

    async def find_one(self, query: dict[str, Any] | None = None, projection: dict[str, Any] | None = None):
        found = self._find(query or {})
        return _project(found[0], projection) if found else None

    async def insert_one(self, document: dict[str, Any]) -> SimpleNamespace:
        document.setdefault("_id", ObjectId())
        stored = copy.deepcopy(document)
        self._check_unique(stored)
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=document["_id"])

    def _apply(self, doc: dict[str, Any], update: dict[str, Any], inserting: bool) -> None:
        doc.update(copy.deepcopy(update.get("$set", {})))
        for name, amount in update.get("$inc", {}).items():
            doc[name] = (doc.get(name) or 0) + amount
        if inserting:
            doc.update(copy.deepcopy(update.get("$setOnInsert", {})))

    def _upsert(self, query: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
        doc = {
            key: value
            for key, value in query.items()
            if not key.startswith("$") and not (isinstance(value, dict) and any(k.startswith("$") for k in value))
        }
        doc.setdefault("_id", ObjectId())
        self._apply(doc, update, inserting=True)
        self._check_unique(doc)
        self.docs.append(doc)
        return doc

    async def find_one_and_update(
        self, query: dict[str, Any], update: dict[str, Any], upsert: bool = False, return_document: bool = False
    ):
        found = self._find(query)
        if not found:
            if not upsert:
                return None
            doc = self._upsert(query, update)
            return copy.deepcopy(doc) if return_document else None
        doc = found[0]
        before = copy.deepcopy(doc)
        self._apply(doc, update, inserting=False)
        return copy.deepcopy(doc) if return_document else before

    async def find_one_and_delete(self, query: dict[str, Any]):
        found = self._find(query)
        if not found:
            return None
        self.docs.remove(found[0])
        return found[0]

    async def update_one(self, query: dict[str, Any], update: dict[str, Any], upsert: bool = False) -> SimpleNamespace:
        found = self._find(query)
        if not found:
            if upsert:
                self._upsert(query, update)
            return SimpleNamespace(matched_count=0, modified_count=0)
        self._apply(found[0], update, inserting=False)
        return SimpleNamespace(matched_count=1, modified_count=1)

    async def update_many(self, query: dict[str, Any], update: dict[str, Any]) -> SimpleNamespace:
        found = self._find(query)
        for doc in found:
            self._apply(doc, update, inserting=False)
        return SimpleNamespace(matched_count=len(found), modified_count=len(found))

    async def delete_one(self, query: dict[str, Any]) -> SimpleNamespace:
        found = self._find(query)
        if found:
            self.docs.remove(found[0])
        return SimpleNamespace(deleted_count=1 if found else 0)


class FakeDatabase:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())

    async def command(self, name: str) -> dict[str, Any]:
        return {"ok": 1.0}


class _FakeMongoClient:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    def __getitem__(self, _name: str) -> FakeDatabase:
        return self._db

    def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Redis 인메모리 대체 (decode_responses=True 기준)


class FakePubSub:
    def __init__(self, redis: "FakeRedis") -> None:
        self.redis = redis
        self.channels: set[str] = set()
        self.queue: asyncio.Queue = asyncio.Queue()
        self.unsubscribed = False
        self.closed = False

    async def subscribe(self, *channels: str) -> None:
        self.channels.update(channels)
        self.redis.subscribers.add(self)
        for channel in channels:
            self.queue.put_nowait({"type": "subscribe", "channel": channel, "data": len(self.channels)})

    async def unsubscribe(self, *channels: str) -> None:
        if channels:
            self.channels.difference_update(channels)
        else:
            self.channels.clear()
            self.unsubscribed = True
        if not self.channels:
            self.redis.subscribers.discard(self)

    def fail(self, exc: Exception) -> None:
        # 다음 listen() 단계에서 연결 오류를 발생시킴
        self.queue.put_nowait(exc)

    async def listen(self):
        while True:
            item = await self.queue.get()
            if isinstance(item, Exception):
                raise item
            yield item

    async def aclose(self) -> None:
        self.closed = True
        self.redis.subscribers.discard(self)


class FakeRedis:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.ttls: dict[str, int] = {}
        self.subscribers: set[FakePubSub] = set()
        self.published: list[tuple[str, str]] = []

    def _exists(self, key: str) -> bool:
        return key in self.store or key in self.hashes

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: Any, ex: int | None = None) -> bool:
        self.store[key] = str(value)
        if ex:
            self.ttls[key] = int(ex)
        else:
            self.ttls.pop(key, None)
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._exists(key):
                removed += 1
            self.store.pop(key, None)
            self.hashes.pop(key, None)
            self.ttls.pop(key, None)
        return removed

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if self._exists(key))

    async def incr(self, key: str) -> int:
        value = int(self.store.get(key, "0")) + 1
        self.store[key] = str(value)
        return value

    async def expire(self, key: str, seconds: int) -> bool:
        if not self._exists(key):
            return False
        self.ttls[key] = int(seconds)
        return True

    async def ttl(self, key: str) -> int:
        if not self._exists(key):
            return -2
        return self.ttls.get(key, -1)

    async def hset(self, key: str, mapping: dict[str, Any] | None = None) -> int:
        current = self.hashes.setdefault(key, {})
        added = sum(1 for name in (mapping or {}) if name not in current)
        current.update({name: str(value) for name, value in (mapping or {}).items()})
        return added

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self.hashes.get(key, {}))

    async def scan_iter(self, match: str | None = None):
        for key in list(self.store) + list(self.hashes):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        receivers = [sub for sub in self.subscribers if channel in sub.channels]
        for sub in receivers:
            sub.queue.put_nowait({"type": "message", "channel": channel, "data": message})
        return len(receivers)

    async def ping(self) -> bool:
        return True

    def pubsub(self) -> FakePubSub:
        return FakePubSub(self)

    async def aclose(self) -> None:
        return None


# ---------------------------------------------------------------------------
# fixtures


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture(autouse=True)
def stub_infrastructure(monkeypatch: pytest.MonkeyPatch, fake_db: FakeDatabase, fake_redis: FakeRedis) -> None:
    """DB/Redis 커넥션을 테스트마다 새로 만든 인메모리 대체 객체로 바꿉니다."""
    mongo_client = _FakeMongoClient(fake_db)

    async def _noop_close(cls: type) -> None:
        return None

    monkeypatch.setattr(MongoConnectionManager, "get_client", classmethod(lambda cls: mongo_client))
    monkeypatch.setattr(RedisConnectionManager, "get_client", classmethod(lambda cls: fake_redis))
    monkeypatch.setattr(MongoConnectionManager, "close", classmethod(lambda cls: _noop_close(cls)))
    monkeypatch.setattr(RedisConnectionManager, "close", classmethod(lambda cls: _noop_close(cls)))


@pytest.fixture(autouse=True)
def mock_ai_gateway(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    AI 게이트웨이 호출을 막는 fixture

    개별 테스트에서 monkeypatch 로 응답을 지정하지 않으면 502 를 올립니다.
    """
    from fastapi import HTTPException

    from backend.traveltactix.services import ai_gateway

    async def _unavailable(*_args: Any, **_kwargs: Any) -> Any:
        raise HTTPException(status_code=502, detail="AI gateway unreachable")

    monkeypatch.setattr(ai_gateway, "complete", _unavailable)
    monkeypatch.setattr(ai_gateway, "stream", _unavailable)


@pytest.fixture
def event_bus(fake_redis: FakeRedis) -> EventBus:
    return EventBus(fake_redis)


@pytest.fixture
def dispatcher(fake_db: FakeDatabase, event_bus: EventBus) -> MutationDispatcher:
    return MutationDispatcher(fake_db, event_bus)


@pytest_asyncio.fixture
async def client():
    from backend.traveltactix.main import app

    async with LifespanManager(app):
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as http:
            yield http


@pytest.fixture
def register(client: httpx.AsyncClient):
    """회원가입 + 로그인 후 인증 헤더와 사용자 ID 를 돌려주는 헬퍼"""

    async def _register(
        email: str = "traveler@example.com",
        full_name: str = "Traveler",
        password: str = "password123",
    ) -> dict[str, Any]:
        signup = await client.post(
            "/api/auth/signup", json={"email": email, "password": password, "full_name": full_name}
        )
        assert signup.status_code == 201, signup.text
        login = await client.post("/api/auth/login", json={"email": email, "password": password})
        assert login.status_code == 200, login.text
        data = login.json()
        return {
            "headers": {"Authorization": f"Bearer {data['access_token']}"},
            "user_id": data["user"]["id"],
            "tokens": data,
        }

    return _register
