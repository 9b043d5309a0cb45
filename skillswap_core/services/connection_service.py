# skillswap_core/services/connection_service.py
"""
Connection Lifecycle
Business rules for connection requests between a requester and a post owner.

    pending --accept--> accepted
    pending --decline--> declined
    accepted --(session completes)--> completed

``declined`` and ``completed`` are terminal. Nothing in the engine currently
drives ``accepted -> completed``; the edge is kept in the table so a future
caller has a legal transition to use.
"""

import logging
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from skillswap_core.crud import connection as connection_crud
from skillswap_core.crud import post as post_crud
from skillswap_core.crud import user as user_crud
from skillswap_core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    store_round_trip,
)
from skillswap_core.models.common import utcnow
from skillswap_core.models.connection import Connection, ConnectionMode, ConnectionStatus
from skillswap_core.schemas.connection import ConnectionDetail, ConnectionListing, PostSummary

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    ConnectionStatus.PENDING.value: frozenset({ConnectionStatus.ACCEPTED.value, ConnectionStatus.DECLINED.value}),
    ConnectionStatus.ACCEPTED.value: frozenset({ConnectionStatus.COMPLETED.value}),
    ConnectionStatus.DECLINED.value: frozenset(),
    ConnectionStatus.COMPLETED.value: frozenset(),
}

OWNER_DECISIONS = frozenset({ConnectionStatus.ACCEPTED.value, ConnectionStatus.DECLINED.value})


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def _validate_mode(mode) -> str:
    try:
        return ConnectionMode(mode).value
    except ValueError:
        allowed = ", ".join(m.value for m in ConnectionMode)
        raise ValidationError(f"Unknown connection mode '{mode}'. Use one of: {allowed}")


# ======================
# CREATE
# ======================

def create_connection(
    db: Session,
    *,
    post_id: int,
    requester_id: int,
    owner_id: int,
    mode=ConnectionMode.CHAT,
    message: Optional[str] = None,
) -> Connection:
    """
    Insert a pending connection request from ``requester_id`` on ``owner_id``'s post.

    Raises:
        ValidationError: requester is the owner, unknown mode, or owner does not own the post
        NotFoundError: post does not exist
    """
    if requester_id == owner_id:
        raise ValidationError("You cannot connect with yourself")
    mode_value = _validate_mode(mode)

    with store_round_trip("create_connection"):
        post = post_crud.get_post(db, post_id)
        if not post:
            raise NotFoundError("Post", post_id)
        if post.user_id != owner_id:
            raise ValidationError("Connection owner must be the owner of the post")

        connection = connection_crud.create_connection(
            db,
            post_id=post_id,
            requester_id=requester_id,
            post_owner_id=owner_id,
            connection_type=mode_value,
            message=(message or "").strip() or None,
        )
        db.commit()
        db.refresh(connection)

    logger.info(
        "Connection %s requested (post_id=%s, requester_id=%s, owner_id=%s, mode=%s)",
        connection.id, post_id, requester_id, owner_id, mode_value,
    )
    return connection


def request_connection(
    db: Session,
    *,
    post_id: int,
    requester_id: int,
    mode=ConnectionMode.CHAT,
    message: Optional[str] = None,
) -> Connection:
    """Create a connection when only the post is known; the owner is read from it."""
    post = post_crud.get_post(db, post_id)
    if not post:
        raise NotFoundError("Post", post_id)
    return create_connection(
        db,
        post_id=post_id,
        requester_id=requester_id,
        owner_id=post.user_id,
        mode=mode,
        message=message,
    )


# ======================
# TRANSITIONS
# ======================

def respond(db: Session, connection_id: int, decision: str, acting_user_id: int) -> Connection:
    """
    Accept or decline a pending request. Only the post owner may answer.

    The row is re-read under a lock where the backend has row locks, and the
    write itself only matches the status that was read. Any prior state other
    than ``pending``, including one committed by a concurrent answer after the
    read, is rejected and the row is left untouched.
    """
    decision = str(getattr(decision, "value", decision))
    if decision not in OWNER_DECISIONS:
        raise ValidationError("Decision must be 'accepted' or 'declined'")

    with store_round_trip("respond_to_connection"):
        connection = connection_crud.get_connection_for_update(db, connection_id)
        if not connection:
            db.rollback()
            raise NotFoundError("Connection", connection_id)
        if connection.post_owner_id != acting_user_id:
            db.rollback()
            raise AuthorizationError("Only the post owner can respond to this request")
        if not can_transition(connection.status, decision):
            current = connection.status
            db.rollback()
            raise InvalidStateError(
                f"Connection is already {current}",
                current_status=current,
                requested=decision,
            )

        connection.status = decision
        connection.updated_at = utcnow()
        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            latest = connection_crud.get_connection(db, connection_id)
            current = latest.status if latest else None
            logger.warning(
                "Connection %s changed to %s before %s could be applied",
                connection_id, current, decision,
            )
            raise InvalidStateError(
                f"Connection is already {current}",
                current_status=current,
                requested=decision,
            )
        db.refresh(connection)

    logger.info("Connection %s %s by owner %s", connection_id, decision, acting_user_id)
    return connection


def get_connection(db: Session, connection_id: int) -> Connection:
    connection = connection_crud.get_connection(db, connection_id)
    if not connection:
        raise NotFoundError("Connection", connection_id)
    return connection


def get_participant_connection(db: Session, connection_id: int, user_id: int) -> Connection:
    """Connection the user takes part in; anyone else gets AuthorizationError."""
    connection = get_connection(db, connection_id)
    if not connection.is_participant(user_id):
        raise AuthorizationError("You are not part of this connection")
    return connection


# ======================
# LISTING
# ======================

def _enrich(db: Session, connections: List[Connection], user_id: int) -> List[ConnectionDetail]:
    profiles = user_crud.get_profiles(db, [c.counterpart_id(user_id) for c in connections])
    posts = post_crud.get_posts(db, [c.post_id for c in connections])

    details = []
    for c in connections:
        post = posts.get(c.post_id)
        details.append(
            ConnectionDetail(
                id=c.id,
                post_id=c.post_id,
                requester_id=c.requester_id,
                post_owner_id=c.post_owner_id,
                connection_type=c.connection_type,
                message=c.message,
                status=c.status,
                created_at=c.created_at,
                updated_at=c.updated_at,
                is_incoming=c.post_owner_id == user_id,
                counterpart=profiles[c.counterpart_id(user_id)],
                post=PostSummary.model_validate(post) if post else None,
            )
        )
    return details


def list_for_user(db: Session, user_id: int) -> List[ConnectionDetail]:
    """Every connection the user requested or owns, newest first."""
    with store_round_trip("list_connections"):
        connections = connection_crud.list_connections_for_user(db, user_id)
        return _enrich(db, connections, user_id)


def list_pending_for_owner(db: Session, owner_id: int) -> List[ConnectionDetail]:
    """Incoming requests still waiting on the owner's decision."""
    with store_round_trip("list_pending_connections"):
        connections = connection_crud.list_pending_for_owner(db, owner_id)
        return _enrich(db, connections, owner_id)


def split_by_direction(details: List[ConnectionDetail]) -> ConnectionListing:
    listing = ConnectionListing()
    for detail in details:
        (listing.incoming if detail.is_incoming else listing.outgoing).append(detail)
    return listing
