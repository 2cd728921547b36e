from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from .common import ProfileSummary

FriendshipStatus = Literal["pending", "accepted", "rejected", "blocked"]


class FriendRequestCreate(BaseModel):
    friend_id: str


class Friendship(BaseModel):
    id: str
    user_id: str
    friend_id: str
    status: FriendshipStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None
    profile: ProfileSummary = Field(default_factory=ProfileSummary)


class FriendsOverview(BaseModel):
    friends: list[Friendship] = Field(default_factory=list)
    pending_requests: list[Friendship] = Field(default_factory=list)
    sent_requests: list[Friendship] = Field(default_factory=list)


class MessageCreate(BaseModel):
    receiver_id: str
    content: str = Field(min_length=1, max_length=2000)


class Message(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    content: str
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime | None = None


class Conversation(BaseModel):
    partner_id: str
    partner: ProfileSummary
    last_message: Message
    unread_count: int = 0


class ActivityCreate(BaseModel):
    activity_type: str = Field(min_length=1, max_length=50)
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_public: bool = True


class Activity(BaseModel):
    id: str
    user_id: str
    activity_type: str
    title: str
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_public: bool = True
    icon: str
    created_at: datetime | None = None
    profile: ProfileSummary = Field(default_factory=ProfileSummary)
