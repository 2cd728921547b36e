"""
단일 쓰기 + 변경 이벤트 발행 + 재조회

후속 쓰기(예: XP 지급)는 best-effort 로 실행합니다. 실패해도 기록만 남기고 원본 쓰기는 되돌리지 않습니다.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Generic, Literal, TypeVar

from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from .events import ChangeType, EventBus, make_event

logger = logging.getLogger(__name__)

R = TypeVar("R")

MutationKind = Literal["insert", "update", "delete"]
FollowUp = Callable[[], Awaitable[Any]]


@dataclass
class Mutation:
    table: str
    kind: MutationKind
    filter: dict[str, Any] = field(default_factory=dict)
    # insert: 새 문서, update: $set 으로 적용할 필드
    document: dict[str, Any] = field(default_factory=dict)
    conflict_detail: str = "Record already exists"
    not_found_detail: str = "Record not found"
    # 조건부 갱신(상태 전이)이 맞지 않을 때는 409 로 바꿔 씁니다
    not_found_status: int = status.HTTP_404_NOT_FOUND


@dataclass
class MutationResult(Generic[R]):
    record: dict[str, Any] | None
    refreshed: R | None = None
    follow_up_errors: list[str] = field(default_factory=list)


class MutationDispatcher:
    def __init__(self, db: AsyncIOMotorDatabase, bus: EventBus | None = None) -> None:
        self.db = db
        self.bus = bus

    async def _write(self, mutation: Mutation) -> tuple[dict[str, Any] | None, ChangeType]:
        collection = self.db[mutation.table]
        if mutation.kind == "insert":
            doc = {**mutation.document}
            doc.setdefault("created_at", datetime.now(timezone.utc))
            result = await collection.insert_one(doc)
            doc["_id"] = result.inserted_id
            return doc, ChangeType.INSERT
        if mutation.kind == "update":
            changes = {**mutation.document, "updated_at": datetime.now(timezone.utc)}
            doc = await collection.find_one_and_update(
                mutation.filter,
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
            return doc, ChangeType.UPDATE
        doc = await collection.find_one_and_delete(mutation.filter)
        return doc, ChangeType.DELETE

    async def dispatch(
        self,
        mutation: Mutation,
        *,
        refetch: Callable[[], Awaitable[R]] | None = None,
        follow_ups: list[FollowUp] | None = None,
    ) -> MutationResult[R]:
        try:
            record, change = await self._write(mutation)
        except DuplicateKeyError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=mutation.conflict_detail) from exc
        except PyMongoError as exc:
            logger.error("%s %s 실패: %s", mutation.table, mutation.kind, exc)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to {mutation.kind} {mutation.table}",
            ) from exc

        if record is None and mutation.kind != "insert":
            raise HTTPException(status_code=mutation.not_found_status, detail=mutation.not_found_detail)

        if self.bus is not None:
            await self.bus.publish(make_event(mutation.table, change, record))

        result: MutationResult[R] = MutationResult(record=record)
        for follow_up in follow_ups or []:
            try:
                await follow_up()
            except Exception as exc:
                logger.warning("후속 쓰기 실패 (%s %s): %s", mutation.table, mutation.kind, exc)
                result.follow_up_errors.append(str(exc))

        if refetch is not None:
            result.refreshed = await refetch()
        return result

    async def publish(self, table: str, change: ChangeType, record: dict[str, Any] | None) -> None:
        """다건 갱신처럼 dispatch 를 거치지 않은 쓰기의 변경 알림"""
        if self.bus is not None:
            await self.bus.publish(make_event(table, change, record))
