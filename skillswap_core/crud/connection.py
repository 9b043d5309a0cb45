# skillswap_core/crud/connection.py
"""
Connection CRUD Operations
Core database operations for connection requests
"""

from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional

from skillswap_core.models.connection import Connection, ConnectionStatus

OPEN_STATUSES = (ConnectionStatus.PENDING.value, ConnectionStatus.ACCEPTED.value)


def create_connection(
    db: Session,
    post_id: int,
    requester_id: int,
    post_owner_id: int,
    connection_type: str,
    message: Optional[str] = None,
) -> Connection:
    """
    Insert a pending connection request.

    Args:
        db: Database session
        post_id: Post the request is about
        requester_id: User asking to connect
        post_owner_id: Owner of the post
        connection_type: Requested mode (chat / voice_call / video_meeting)
        message: Optional free-text note to the owner

    Returns:
        Created Connection object (flushed, not committed)
    """
    connection = Connection(
        post_id=post_id,
        requester_id=requester_id,
        post_owner_id=post_owner_id,
        connection_type=connection_type,
        message=message,
        status=ConnectionStatus.PENDING.value,
    )
    db.add(connection)
    db.flush()
    return connection


def get_connection(db: Session, connection_id: int) -> Optional[Connection]:
    return db.query(Connection).filter(Connection.id == connection_id).first()


def get_connection_for_update(db: Session, connection_id: int) -> Optional[Connection]:
    """
    Load a connection with a row lock so concurrent transitions serialize on it.

    Backends without row locks (SQLite) ignore FOR UPDATE. The write is still
    guarded there: ``status`` is the mapper's version column, so the UPDATE only
    matches the status read here.
    """
    return (
        db.query(Connection)
        .filter(Connection.id == connection_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def find_open_connection(db: Session, post_id: int, requester_id: int) -> Optional[Connection]:
    """Most recent pending/accepted connection a requester holds on a post."""
    return (
        db.query(Connection)
        .filter(
            Connection.post_id == post_id,
            Connection.requester_id == requester_id,
            Connection.status.in_(OPEN_STATUSES),
        )
        .order_by(Connection.created_at.desc(), Connection.id.desc())
        .first()
    )


def list_connections_for_user(db: Session, user_id: int) -> List[Connection]:
    return (
        db.query(Connection)
        .filter(or_(Connection.requester_id == user_id, Connection.post_owner_id == user_id))
        .order_by(Connection.created_at.desc(), Connection.id.desc())
        .all()
    )


def list_pending_for_owner(db: Session, owner_id: int) -> List[Connection]:
    return (
        db.query(Connection)
        .filter(
            Connection.post_owner_id == owner_id,
            Connection.status == ConnectionStatus.PENDING.value,
        )
        .order_by(Connection.created_at.desc(), Connection.id.desc())
        .all()
    )


def list_accepted_connection_ids(db: Session, user_id: int) -> List[int]:
    rows = (
        db.query(Connection.id)
        .filter(
            or_(Connection.requester_id == user_id, Connection.post_owner_id == user_id),
            Connection.status == ConnectionStatus.ACCEPTED.value,
        )
        .all()
    )
    return [r[0] for r in rows]
