# skillswap_core/api/session.py
"""
Session API Router

Endpoints:
- POST /sessions/schedule - Schedule a session on a post
- GET /sessions/my - Upcoming and past sessions for the current user
- PATCH /sessions/{session_id}/status - Complete or cancel a session
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from skillswap_core.database import get_db
from skillswap_core.models.user import User
from skillswap_core.schemas.session import (
    SessionListing,
    SessionResponse,
    SessionSchedule,
    SessionStatusUpdate,
)
from skillswap_core.services import session_service
from skillswap_core.utils.security import get_current_user

router = APIRouter(prefix="/sessions", tags=["sessions"])


# ======================
# SCHEDULE
# ======================
@router.post("/schedule", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def schedule_session(
    payload: SessionSchedule,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Schedule a session. Without ``connection_id`` the caller's open connection
    on the post is reused, or a pending one is created.
    """
    return session_service.schedule(
        db,
        post_id=payload.post_id,
        requester_id=current_user.id,
        scheduled_date=payload.scheduled_date,
        scheduled_time=payload.scheduled_time,
        duration=payload.duration,
        platform=payload.meeting_platform,
        notes=payload.notes,
        connection_id=payload.connection_id,
    )


# ======================
# LISTING
# ======================
@router.get("/my", response_model=SessionListing)
def my_sessions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return session_service.list_for_user(db, current_user.id)


# ======================
# STATUS
# ======================
@router.patch("/{session_id}/status", response_model=SessionResponse)
def update_session_status(
    session_id: int,
    payload: SessionStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return session_service.update_status(db, session_id, payload.status, current_user.id)
