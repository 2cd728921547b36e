from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PageOut(BaseModel, Generic[T]):
    items: list[T] = Field(default_factory=list)
    offset: int = 0
    next_offset: int | None = None
    has_more: bool = False

    @classmethod
    def from_page(cls, page: Any) -> "PageOut[T]":
        return cls(items=page.items, offset=page.offset, next_offset=page.next_offset, has_more=page.has_more)


class ProfileSummary(BaseModel):
    user_id: str | None = None
    full_name: str = "Unknown"
    avatar_url: str = ""
    level: int = 1
    total_xp: int = 0
