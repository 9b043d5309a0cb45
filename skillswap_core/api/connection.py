# skillswap_core/api/connection.py
"""
Connection API Router

Endpoints:
- POST /connections - Request a connection on a post
- GET /connections/my - Current user's connections, split incoming/outgoing
- GET /connections/pending - Incoming requests awaiting a decision
- POST /connections/{connection_id}/respond - Accept or decline a request
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from skillswap_core.database import get_db
from skillswap_core.models.user import User
from skillswap_core.schemas.connection import (
    ConnectionCreate,
    ConnectionDecision,
    ConnectionDetail,
    ConnectionListing,
    ConnectionResponse,
)
from skillswap_core.services import connection_service
from skillswap_core.utils.security import get_current_user

router = APIRouter(prefix="/connections", tags=["connections"])


@router.post("", response_model=ConnectionResponse, status_code=status.HTTP_201_CREATED)
def request_connection(
    payload: ConnectionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return connection_service.request_connection(
        db,
        post_id=payload.post_id,
        requester_id=current_user.id,
        mode=payload.connection_type,
        message=payload.message,
    )


@router.get("/my", response_model=ConnectionListing)
def my_connections(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    details = connection_service.list_for_user(db, current_user.id)
    return connection_service.split_by_direction(details)


@router.get("/pending", response_model=List[ConnectionDetail])
def pending_requests(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return connection_service.list_pending_for_owner(db, current_user.id)


@router.post("/{connection_id}/respond", response_model=ConnectionResponse)
def respond_to_request(
    connection_id: int,
    payload: ConnectionDecision,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Accept or decline a pending request. Only the post owner may respond, and
    only once: answering a request that is no longer pending returns 409.
    """
    return connection_service.respond(db, connection_id, payload.decision, current_user.id)
