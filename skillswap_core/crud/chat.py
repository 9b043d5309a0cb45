# skillswap_core/crud/chat.py
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Optional

from skillswap_core.models.chat import ChatMessage, TypingStatus
from skillswap_core.models.common import utcnow


# ======================
# MESSAGES
# ======================

def create_message(db: Session, connection_id: int, sender_id: int, text: str) -> ChatMessage:
    message = ChatMessage(
        connection_id=connection_id,
        sender_id=sender_id,
        message=text,
        is_read=False,
    )
    db.add(message)
    db.flush()
    return message


def list_messages(db: Session, connection_id: int) -> List[ChatMessage]:
    """All messages in a thread, oldest first."""
    return (
        db.query(ChatMessage)
        .filter(ChatMessage.connection_id == connection_id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        .all()
    )


def list_unread_inbound(db: Session, connection_id: int, viewer_id: int) -> List[ChatMessage]:
    return db.query(ChatMessage).filter(
        ChatMessage.connection_id == connection_id,
        ChatMessage.sender_id != viewer_id,
        ChatMessage.is_read.is_(False),
    ).all()


def count_unread_inbound(db: Session, connection_id: int, viewer_id: int) -> int:
    return db.query(ChatMessage).filter(
        ChatMessage.connection_id == connection_id,
        ChatMessage.sender_id != viewer_id,
        ChatMessage.is_read.is_(False),
    ).count()


def count_unread_by_connection(db: Session, connection_ids: Iterable[int], viewer_id: int) -> Dict[int, int]:
    return {cid: count_unread_inbound(db, cid, viewer_id) for cid in connection_ids}


# ======================
# TYPING STATUS
# ======================

def get_typing_status(db: Session, connection_id: int, user_id: int) -> Optional[TypingStatus]:
    return db.query(TypingStatus).filter(
        TypingStatus.connection_id == connection_id,
        TypingStatus.user_id == user_id,
    ).first()


def get_partner_typing_status(db: Session, connection_id: int, viewer_id: int) -> Optional[TypingStatus]:
    """Most recent typing row in the connection that does not belong to the viewer."""
    return (
        db.query(TypingStatus)
        .filter(
            TypingStatus.connection_id == connection_id,
            TypingStatus.user_id != viewer_id,
        )
        .order_by(TypingStatus.updated_at.desc())
        .first()
    )


def upsert_typing_status(db: Session, connection_id: int, user_id: int, is_typing: bool) -> TypingStatus:
    """
    Write the (connection, user) typing row, last write wins.

    A concurrent first insert for the same pair loses to the primary key and is
    retried as an update.
    """
    row = get_typing_status(db, connection_id, user_id)
    if row is None:
        row = TypingStatus(connection_id=connection_id, user_id=user_id, is_typing=is_typing, updated_at=utcnow())
        db.add(row)
        try:
            db.commit()
            return row
        except IntegrityError:
            db.rollback()
            row = get_typing_status(db, connection_id, user_id)
            if row is None:
                raise
    row.is_typing = is_typing
    row.updated_at = utcnow()
    db.commit()
    return row
