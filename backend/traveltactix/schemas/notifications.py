from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

NotificationType = Literal["mission", "achievement", "streak", "xp", "leaderboard", "info"]


class NotificationCreate(BaseModel):
    user_id: str | None = None
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=2000)
    notification_type: NotificationType = "info"
    metadata: dict[str, Any] = Field(default_factory=dict)


class Notification(BaseModel):
    id: str
    user_id: str
    title: str
    message: str
    notification_type: NotificationType = "info"
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    created_at: datetime | None = None


class PushAction(BaseModel):
    action: str
    title: str


class PushPayload(BaseModel):
    title: str
    body: str
    url: str = "/"
    tag: str
    actions: list[PushAction] = Field(default_factory=list)
