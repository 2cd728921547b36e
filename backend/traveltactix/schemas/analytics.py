from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AnalyticsEvent(BaseModel):
    event_name: str = Field(min_length=1, max_length=100)
    event_category: str | None = None
    session_id: str | None = None
    page_url: str | None = None
    properties: dict[str, Any] = Field(default_factory=dict)


class SessionUpdate(BaseModel):
    session_id: str = Field(min_length=1, max_length=100)
    pages_visited: int = Field(default=1, ge=0)
    device_type: str | None = None
    referrer: str | None = None


class SessionOut(BaseModel):
    session_id: str
    user_id: str | None = None
    pages_visited: int = 0
    started_at: datetime | None = None
    last_activity: datetime | None = None
    device_type: str | None = None
    referrer: str | None = None
