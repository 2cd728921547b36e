from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field


class ItineraryRequest(BaseModel):
    destination: str = Field(min_length=1, max_length=100)
    days: int = Field(ge=1, le=14)
    budget: Literal["budget", "moderate", "luxury"] = "moderate"
    interests: list[str] = Field(default_factory=list)
    travel_style: str | None = None


class ItineraryActivity(BaseModel):
    time: str = ""
    title: str = ""
    description: str = ""
    location: str | None = None
    estimated_cost_usd: float = 0
    estimated_cost_inr: str = ""


class ItineraryDay(BaseModel):
    day: int
    theme: str | None = None
    activities: list[ItineraryActivity] = Field(default_factory=list)


class Itinerary(BaseModel):
    destination: str
    days: list[ItineraryDay] = Field(default_factory=list)
    total_estimated_cost_inr: str = ""
    tips: list[str] = Field(default_factory=list)


class RecommendationRequest(BaseModel):
    city: str | None = None
    mood: str | None = None
    refresh: bool = False


class Recommendation(BaseModel):
    place_id: str
    name: str
    match_score: int = Field(ge=0, le=100)
    reason: str = ""
    place: dict[str, Any] | None = None


class RecommendationResponse(BaseModel):
    recommendations: list[Recommendation]
    cached: bool = False
    fallback: bool = False


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1, max_length=4000)


class AssistantRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)
    conversation_id: str | None = None


class LandmarkRequest(BaseModel):
    image_base64: str = Field(min_length=1)
    latitude: float | None = None
    longitude: float | None = None


class LandmarkResult(BaseModel):
    landmark_name: str | None = None
    city: str | None = None
    country: str | None = None
    confidence: Literal["high", "medium", "low"] = "low"
    description: str | None = None
    historical_facts: list[str] = Field(default_factory=list)


class ConversationOut(BaseModel):
    id: str
    user_id: str
    title: str
    messages: list[dict[str, Any]] = Field(default_factory=list)
    updated_at: Any | None = None


class MissionRecommendationRequest(BaseModel):
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    time_available: int | None = Field(default=None, ge=1, le=24 * 60, description="minutes")


class MissionPick(BaseModel):
    mission_id: str
    fit_score: int = Field(ge=0, le=100)
    reason: str = ""
    mission: dict[str, Any] | None = None


class TravelerStats(BaseModel):
    level: int = 1
    completed_missions: int = 0
    completion_rate: int = 0
    avg_minutes_per_mission: int = 60
    preferred_category: str = "culture"


class MissionRecommendationResponse(BaseModel):
    recommendations: list[MissionPick]
    user_stats: TravelerStats
    fallback: bool = False


class QuizQuestion(BaseModel):
    id: str
    question: str
    options: list[str]


class QuizQuestions(BaseModel):
    questions: list[QuizQuestion]
    fallback: bool = False


class QuizAnswer(BaseModel):
    question: str = Field(max_length=500)
    answer: str = Field(max_length=1000)


AnswerList = Annotated[list[QuizAnswer], Field(max_length=20)]
AnswerMap = Annotated[dict[str, Annotated[str, Field(max_length=1000)]], Field(max_length=20)]


class QuizRecommendationRequest(BaseModel):
    # 목록 또는 {질문: 답} 형태 모두 허용
    answers: AnswerList | AnswerMap
    city: str | None = None

    def answer_list(self) -> list[dict[str, str]]:
        if isinstance(self.answers, dict):
            return [{"question": question, "answer": answer} for question, answer in self.answers.items()]
        return [item.model_dump() for item in self.answers]


class QuizPick(Recommendation):
    unique_highlight: str = ""


class QuizRecommendationResponse(BaseModel):
    recommendations: list[QuizPick]
    trends: str = ""
    fallback: bool = False
