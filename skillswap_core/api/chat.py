# skillswap_core/api/chat.py
"""
Chat API Router

Endpoints:
- GET /chat/unread - Unread inbound counts across accepted connections
- GET /chat/{connection_id}/messages - Thread history, oldest first
- POST /chat/{connection_id}/messages - Send a message
- POST /chat/{connection_id}/read - Mark inbound messages read

Live delivery goes through the event bus; these endpoints cover the
request/response side of a conversation.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from skillswap_core.crud import user as user_crud
from skillswap_core.database import get_db
from skillswap_core.models.user import User
from skillswap_core.schemas.chat import ChatMessageView, MessageCreate, MessageDayGroup, UnreadSummary
from skillswap_core.services import connection_service, messaging_service
from skillswap_core.utils.security import get_current_user

router = APIRouter(prefix="/chat", tags=["chat"])


@router.get("/unread", response_model=UnreadSummary)
def unread_summary(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return messaging_service.unread_counts_for_user(db, current_user.id)


@router.get("/{connection_id}/messages", response_model=List[ChatMessageView])
def message_history(
    connection_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    connection_service.get_participant_connection(db, connection_id, current_user.id)
    return messaging_service.history(db, connection_id)


@router.get("/{connection_id}/messages/by-day", response_model=List[MessageDayGroup])
def message_history_by_day(
    connection_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    connection_service.get_participant_connection(db, connection_id, current_user.id)
    return messaging_service.group_messages_by_day(messaging_service.history(db, connection_id))


@router.post("/{connection_id}/messages", response_model=ChatMessageView, status_code=status.HTTP_201_CREATED)
def send_message(
    connection_id: int,
    payload: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    message = messaging_service.send_message(db, connection_id, current_user.id, payload.message)
    return messaging_service.to_view(message, user_crud.get_profile(db, current_user.id))


@router.post("/{connection_id}/read")
def mark_read(
    connection_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    connection_service.get_participant_connection(db, connection_id, current_user.id)
    updated = messaging_service.mark_read(db, connection_id, current_user.id)
    return {"connection_id": connection_id, "marked_read": updated}
