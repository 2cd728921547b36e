from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar

from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class RemoteQueryError(HTTPException):
    def __init__(self, detail: str = "Failed to load data"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


@dataclass
class Page(Generic[T]):
    items: list[T]
    offset: int
    limit: int

    @property
    def has_more(self) -> bool:
        return len(self.items) == self.limit

    @property
    def next_offset(self) -> int | None:
        return self.offset + len(self.items) if self.has_more else None

    def map(self, fn: Callable[[T], Any]) -> "Page[Any]":
        return Page(items=[fn(item) for item in self.items], offset=self.offset, limit=self.limit)


@dataclass
class RemoteQuery:
    """컬렉션 + 필터 + 정렬로 정의되는 조회. 첫 페이지와 다음 오프셋을 돌려줍니다."""

    collection: str
    filter: dict[str, Any] = field(default_factory=dict)
    sort: list[tuple[str, int]] = field(default_factory=lambda: [("created_at", -1)])
    page_size: int = DEFAULT_PAGE_SIZE
    projection: dict[str, Any] | None = None

    def _limit(self, limit: int | None) -> int:
        value = limit or self.page_size
        return max(1, min(value, MAX_PAGE_SIZE))

    async def fetch(self, db: AsyncIOMotorDatabase, offset: int = 0, limit: int | None = None) -> Page[dict]:
        size = self._limit(limit)
        offset = max(0, offset)
        try:
            cursor = db[self.collection].find(self.filter, self.projection)
            if self.sort:
                cursor = cursor.sort(self.sort)
            cursor = cursor.skip(offset).limit(size)
            items = [doc async for doc in cursor]
        except PyMongoError as exc:
            logger.error("%s 조회 실패: %s", self.collection, exc)
            raise RemoteQueryError(detail=f"Failed to load {self.collection}") from exc
        return Page(items=items, offset=offset, limit=size)

    async def fetch_all(self, db: AsyncIOMotorDatabase, limit: int = 500) -> list[dict]:
        """페이지 구분 없이 최대 limit 개까지 조회 (파생 뷰 계산용)"""
        try:
            cursor = db[self.collection].find(self.filter, self.projection)
            if self.sort:
                cursor = cursor.sort(self.sort)
            return [doc async for doc in cursor.limit(limit)]
        except PyMongoError as exc:
            logger.error("%s 조회 실패: %s", self.collection, exc)
            raise RemoteQueryError(detail=f"Failed to load {self.collection}") from exc
