from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from .notifications import PushAction

CacheStrategy = Literal["cache-first", "network-only", "bypass"]


class OfflineCachePolicy(BaseModel):
    cache_name: str
    precache_urls: list[str]
    network_only_patterns: list[str]
    offline_fallback: str
    default_push_title: str
    default_push_tag: str
    default_push_actions: list[PushAction]


class StrategyResponse(BaseModel):
    method: str
    url: str
    strategy: CacheStrategy


class ClickResolution(BaseModel):
    action: Literal["none", "focus", "open"]
    url: str | None = None
    window_index: int | None = None


class ClickRequest(BaseModel):
    action: str | None = None
    url: str = "/"
    open_windows: list[str] = Field(default_factory=list)


class OfflineAction(BaseModel):
    action_type: str
    action_data: dict[str, Any] = Field(default_factory=dict)


class QueuedAction(OfflineAction):
    id: str
    user_id: str
    synced: bool = False
    synced_at: datetime | None = None
    created_at: datetime | None = None


class SyncReport(BaseModel):
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)
