"""
변경 이벤트 모델과 Redis pub/sub 기반 이벤트 버스

쓰기가 일어날 때마다 테이블 단위 채널(`changes:<table>`)로 ChangeEvent 를 발행합니다.
전달 순서나 1회 전달은 보장하지 않습니다. 구독자는 이벤트를 받으면 멱등한 재조회를 수행합니다.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from bson import ObjectId
from pydantic import BaseModel, Field
from redis.asyncio import Redis

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "changes:"


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    table: str
    event: ChangeType
    record: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def channel_for(table: str) -> str:
    return f"{CHANNEL_PREFIX}{table}"


def _jsonable(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {("id" if key == "_id" else key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def make_event(table: str, event: ChangeType, record: dict[str, Any] | None) -> ChangeEvent:
    return ChangeEvent(table=table, event=event, record=_jsonable(record or {}))


class EventBus:
    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    async def publish(self, event: ChangeEvent) -> None:
        # 알림 발행 실패가 원본 쓰기를 실패시키지 않도록 기록만 남김
        try:
            await self.redis.publish(channel_for(event.table), event.model_dump_json())
        except Exception as exc:
            logger.warning("변경 이벤트 발행 실패 (%s %s): %s", event.table, event.event.value, exc)

    def pubsub(self):
        return self.redis.pubsub()


def decode_message(message: dict[str, Any]) -> ChangeEvent | None:
    if message.get("type") != "message":
        return None
    try:
        return ChangeEvent.model_validate(json.loads(message["data"]))
    except (ValueError, KeyError, TypeError):
        logger.warning("해석할 수 없는 변경 이벤트 무시: %r", message.get("data"))
        return None
