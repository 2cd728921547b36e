from fastapi import APIRouter

from .routes import (
    activity,
    ai,
    analytics,
    auth,
    config,
    friends,
    health,
    messages,
    missions,
    notifications,
    places,
    profiles,
    realtime,
    streaks,
    sync,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(config.router, prefix="/config", tags=["config"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(profiles.router, prefix="/profiles", tags=["profiles"])
api_router.include_router(places.router, prefix="/places", tags=["places"])
api_router.include_router(missions.router, prefix="/missions", tags=["missions"])
api_router.include_router(streaks.router, prefix="/streaks", tags=["streaks"])
api_router.include_router(friends.router, prefix="/friends", tags=["friends"])
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
api_router.include_router(activity.router, prefix="/activity", tags=["activity"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(ai.router, prefix="/ai", tags=["ai"])
api_router.include_router(sync.router, prefix="/sync", tags=["sync"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
api_router.include_router(realtime.router, prefix="/realtime", tags=["realtime"])
