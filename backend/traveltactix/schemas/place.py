from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

CrowdStatus = Literal["low", "medium", "high"]


class BestVisitTime(BaseModel):
    day: str
    time: str
    crowd: CrowdStatus


class Place(BaseModel):
    id: str
    name: str
    city: str | None = None
    country: str | None = None
    category: str | None = None
    description: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    image_urls: list[str] = Field(default_factory=list)
    mood_tags: list[str] = Field(default_factory=list)
    is_hidden_gem: bool = False
    crowd_status: CrowdStatus | None = None
    crowd_percentage: int | None = None
    best_visit_times: list[BestVisitTime] = Field(default_factory=list)
    last_crowd_update: datetime | None = None
    is_favorite: bool = False


class CrowdData(BaseModel):
    place_id: str
    crowd_status: CrowdStatus
    crowd_percentage: int
    best_visit_times: list[BestVisitTime]
    last_updated: datetime


class FavoriteOut(BaseModel):
    id: str
    user_id: str
    place_id: str
    created_at: datetime | None = None
