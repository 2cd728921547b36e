from .ai import (
    AssistantRequest,
    ChatMessage,
    ConversationOut,
    Itinerary,
    ItineraryRequest,
    LandmarkRequest,
    LandmarkResult,
    MissionPick,
    MissionRecommendationRequest,
    MissionRecommendationResponse,
    QuizAnswer,
    QuizPick,
    QuizQuestion,
    QuizQuestions,
    QuizRecommendationRequest,
    QuizRecommendationResponse,
    Recommendation,
    RecommendationRequest,
    RecommendationResponse,
    TravelerStats,
)
from .analytics import AnalyticsEvent, SessionOut, SessionUpdate
from .auth import LoginResponse, LogoutResponse, RefreshRequest, RefreshResponse, SignupResponse
from .common import PageOut, ProfileSummary
from .mission import Mission, UserMission, VerificationRequest, VerificationResponse
from .notifications import Notification, NotificationCreate, PushPayload
from .offline import (
    ClickRequest,
    ClickResolution,
    OfflineAction,
    OfflineCachePolicy,
    QueuedAction,
    StrategyResponse,
    SyncReport,
)
from .place import CrowdData, FavoriteOut, Place
from .profile import LeaderboardEntry, ProfileOut, ProfileUpdate
from .social import (
    Activity,
    ActivityCreate,
    Conversation,
    FriendRequestCreate,
    FriendsOverview,
    Friendship,
    Message,
    MessageCreate,
)
from .streaks import Streak, StreakCheckIn
from .user import UserCreate, UserLogin, UserPublic

__all__ = [
    "Activity",
    "ActivityCreate",
    "AnalyticsEvent",
    "AssistantRequest",
    "ChatMessage",
    "ClickRequest",
    "ClickResolution",
    "Conversation",
    "ConversationOut",
    "CrowdData",
    "FavoriteOut",
    "FriendRequestCreate",
    "FriendsOverview",
    "Friendship",
    "Itinerary",
    "ItineraryRequest",
    "LandmarkRequest",
    "LandmarkResult",
    "LeaderboardEntry",
    "LoginResponse",
    "LogoutResponse",
    "Message",
    "MessageCreate",
    "Mission",
    "MissionPick",
    "MissionRecommendationRequest",
    "MissionRecommendationResponse",
    "Notification",
    "NotificationCreate",
    "OfflineAction",
    "OfflineCachePolicy",
    "PageOut",
    "Place",
    "ProfileOut",
    "ProfileSummary",
    "ProfileUpdate",
    "PushPayload",
    "QueuedAction",
    "QuizAnswer",
    "QuizPick",
    "QuizQuestion",
    "QuizQuestions",
    "QuizRecommendationRequest",
    "QuizRecommendationResponse",
    "Recommendation",
    "RecommendationRequest",
    "RecommendationResponse",
    "RefreshRequest",
    "RefreshResponse",
    "SessionOut",
    "SessionUpdate",
    "SignupResponse",
    "Streak",
    "StreakCheckIn",
    "StrategyResponse",
    "SyncReport",
    "TravelerStats",
    "UserCreate",
    "UserLogin",
    "UserMission",
    "UserPublic",
    "VerificationRequest",
    "VerificationResponse",
]
