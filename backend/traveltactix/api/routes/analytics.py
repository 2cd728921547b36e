from fastapi import APIRouter, Depends, Request, Response, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.auth import get_current_user
from ...dependencies import get_mongo_db
from ...schemas import AnalyticsEvent, SessionOut, SessionUpdate, UserPublic
from ...services import analytics as analytics_service

router = APIRouter()


def _tracker(request: Request) -> analytics_service.SessionTracker:
    tracker = getattr(request.app.state, "session_tracker", None)
    if tracker is None:
        tracker = analytics_service.SessionTracker()
        request.app.state.session_tracker = tracker
    return tracker


@router.post("/events", status_code=status.HTTP_201_CREATED)
async def track_event(
    payload: AnalyticsEvent,
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> dict[str, str]:
    return await analytics_service.track_event(db, current_user.id, payload.model_dump())


@router.put("/sessions", response_model=SessionOut, responses={204: {"description": "이후 요청에 의해 취소됨"}})
async def update_session(
    payload: SessionUpdate,
    request: Request,
    current_user: UserPublic = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
):
    session = await _tracker(request).update(db, current_user.id, payload.model_dump())
    if session is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return SessionOut(**session)
