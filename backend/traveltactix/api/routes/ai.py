from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.auth import get_current_user
from ...core.config import settings
from ...dependencies import get_mongo_db, get_recommendation_cache
from ...schemas import (
    AssistantRequest,
    ConversationOut,
    Itinerary,
    ItineraryRequest,
    LandmarkRequest,
    LandmarkResult,
    MissionRecommendationRequest,
    MissionRecommendationResponse,
    QuizQuestions,
    QuizRecommendationRequest,
    QuizRecommendationResponse,
    RecommendationRequest,
    RecommendationResponse,
    UserPublic,
)
from ...services import ai as ai_service
from ...services import conversations as conversation_service
from ...services import landmarks
from ...services import mission_recommendations
from ...services import preference_quiz
from ...services.rate_limit import RateLimitResult, rate_limited
from ...services.recommendation_cache import RecommendationCache

router = APIRouter()


@router.post("/itinerary", response_model=Itinerary, summary="여행 일정 생성")
async def generate_itinerary(
    payload: ItineraryRequest,
    _: RateLimitResult = Depends(rate_limited("generate-itinerary", settings.rate_limit_itinerary)),
) -> Itinerary:
    return Itinerary(**await ai_service.generate_itinerary(payload.model_dump()))


@router.post("/recommendations", response_model=RecommendationResponse, summary="숨은 명소 개인화 추천")
async def recommendations(
    payload: RecommendationRequest,
    current_user: UserPublic = Depends(get_current_user),
    _: RateLimitResult = Depends(rate_limited("ai-recommendations", settings.rate_limit_recommendations)),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
    cache: RecommendationCache = Depends(get_recommendation_cache),
) -> RecommendationResponse:
    result = await ai_service.get_recommendations(
        db, cache, current_user.id, city=payload.city, mood=payload.mood, refresh=payload.refresh
    )
    return RecommendationResponse(**result)


@router.post("/missions/recommendations", response_model=MissionRecommendationResponse, summary="개인화 미션 추천")
async def recommend_missions(
    payload: MissionRecommendationRequest,
    current_user: UserPublic = Depends(get_current_user),
    _: RateLimitResult = Depends(
        rate_limited("recommend-missions", settings.rate_limit_mission_recommendations)
    ),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> MissionRecommendationResponse:
    result = await mission_recommendations.recommend_missions(
        db,
        current_user.id,
        latitude=payload.latitude,
        longitude=payload.longitude,
        time_available=payload.time_available,
    )
    return MissionRecommendationResponse(**result)


@router.post("/smart/questions", response_model=QuizQuestions, summary="여행 취향 설문 문항")
async def quiz_questions(
    _: RateLimitResult = Depends(rate_limited("smart-recommendations", settings.rate_limit_smart_recommendations)),
) -> QuizQuestions:
    return QuizQuestions(**await preference_quiz.generate_questions())


@router.post("/smart/recommendations", response_model=QuizRecommendationResponse, summary="설문 답변 기반 추천")
async def quiz_recommendations(
    payload: QuizRecommendationRequest,
    current_user: UserPublic = Depends(get_current_user),
    _: RateLimitResult = Depends(rate_limited("smart-recommendations", settings.rate_limit_smart_recommendations)),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> QuizRecommendationResponse:
    result = await preference_quiz.recommend_from_answers(db, current_user.id, payload.answer_list(), payload.city)
    return QuizRecommendationResponse(**result)


@router.post("/landmark", response_model=LandmarkResult, summary="사진 속 랜드마크 인식")
async def recognize_landmark(
    payload: LandmarkRequest,
    _: RateLimitResult = Depends(rate_limited("recognize-landmark", settings.rate_limit_landmark)),
) -> LandmarkResult:
    result = await landmarks.recognize_landmark(payload.image_base64, payload.latitude, payload.longitude)
    return LandmarkResult(**result)


@router.post("/assistant", summary="여행 도우미 (text/event-stream)")
async def travel_assistant(
    payload: AssistantRequest,
    current_user: UserPublic = Depends(get_current_user),
    limit: RateLimitResult = Depends(rate_limited("travel-assistant", settings.rate_limit_assistant)),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> StreamingResponse:
    messages = [message.model_dump() for message in payload.messages]
    relay = await ai_service.open_assistant_stream(db, current_user.id, messages, payload.conversation_id)
    # 직접 반환하는 Response 에는 의존성에서 설정한 헤더가 합쳐지지 않음
    headers = {"Cache-Control": "no-cache", **limit.headers()}
    return StreamingResponse(relay, media_type="text/event-stream", headers=headers)


@router.get("/conversations", response_model=list[ConversationOut])
async def list_conversations(
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> list[ConversationOut]:
    return [ConversationOut(**item) for item in await conversation_service.list_conversations(db, current_user.id)]


@router.get("/conversations/{conversation_id}", response_model=ConversationOut)
async def get_conversation(
    conversation_id: str,
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> ConversationOut:
    return ConversationOut(**await conversation_service.get_conversation(db, current_user.id, conversation_id))


@router.delete("/conversations/{conversation_id}", status_code=204)
async def delete_conversation(
    conversation_id: str,
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> None:
    await conversation_service.delete_conversation(db, current_user.id, conversation_id)
