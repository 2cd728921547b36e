from pydantic import BaseModel, Field


class ProfileOut(BaseModel):
    id: str
    user_id: str
    full_name: str = ""
    avatar_url: str = ""
    bio: str | None = None
    level: int = 1
    total_xp: int = 0
    xp_into_level: int = 0
    xp_to_next_level: int = 1000


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(default=None, min_length=1, max_length=60)
    avatar_url: str | None = None
    bio: str | None = Field(default=None, max_length=500)


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    display_name: str
    level: int
    total_xp: int
