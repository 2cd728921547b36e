from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

MissionStatus = Literal["saved", "in_progress", "verified", "rejected", "completed"]
VerificationType = Literal["location", "photo", "checkin", "quiz"]


class Mission(BaseModel):
    id: str
    title: str
    description: str | None = None
    category: str | None = None
    difficulty: str | None = None
    city: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    xp_reward: int = 0
    deadline: datetime | None = None
    is_active: bool = True


class UserMission(BaseModel):
    id: str
    user_id: str
    mission_id: str
    status: MissionStatus
    verification_type: VerificationType | None = None
    verification_notes: str | None = None
    attempts: int = 0
    xp_awarded: bool = False
    progress: int = 0
    total_required: int = 1
    started_at: datetime | None = None
    verified_at: datetime | None = None
    completed_at: datetime | None = None
    mission: Mission | None = None


class QuizAnswers(BaseModel):
    correct: int = Field(ge=0)
    total: int = Field(ge=0)


class ChecklistItem(BaseModel):
    label: str
    completed: bool = False


class VerificationRequest(BaseModel):
    """검증 방식별 증거: location 은 좌표, photo 는 이미지, checkin 은 체크리스트, quiz 는 정답 수"""

    verification_type: VerificationType
    latitude: float | None = None
    longitude: float | None = None
    image_base64: str | None = None
    checklist: list[ChecklistItem] | None = None
    quiz: QuizAnswers | None = None
    notes: str | None = None


class VerificationResponse(BaseModel):
    success: bool
    verified: bool
    status: MissionStatus
    verification_notes: str
    xp_earned: int = 0
    details: dict[str, Any] = Field(default_factory=dict)
    user_mission: UserMission
