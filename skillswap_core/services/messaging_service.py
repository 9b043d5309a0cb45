# skillswap_core/services/messaging_service.py
"""
Realtime Messaging
Chat messages scoped to a connection: sending, history, read state and the
live per-thread channel.
"""

import asyncio
import inspect
import logging
from itertools import groupby
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from sqlalchemy.orm import Session, sessionmaker

from skillswap_core.config import settings
from skillswap_core.crud import chat as chat_crud
from skillswap_core.crud import connection as connection_crud
from skillswap_core.crud import user as user_crud
from skillswap_core.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
    store_round_trip,
)
from skillswap_core.models.chat import ChatMessage
from skillswap_core.realtime.bus import ChangeEvent, ChangeType, EventBus, Subscription
from skillswap_core.schemas.chat import ChatMessageView, MessageDayGroup, UnreadSummary
from skillswap_core.schemas.user import ProfileSummary

logger = logging.getLogger(__name__)

MESSAGES_TABLE = "skill_chat_messages"


def to_view(message: Any, sender: ProfileSummary) -> ChatMessageView:
    """Build a view from an ORM row or a change-event row dict."""
    data = message if isinstance(message, dict) else {
        "id": message.id,
        "connection_id": message.connection_id,
        "sender_id": message.sender_id,
        "message": message.message,
        "is_read": message.is_read,
        "created_at": message.created_at,
    }
    return ChatMessageView(
        id=data["id"],
        connection_id=data["connection_id"],
        sender_id=data["sender_id"],
        message=data["message"],
        is_read=bool(data.get("is_read")),
        created_at=data["created_at"],
        sender=sender,
    )


# ======================
# SEND
# ======================

def send_message(db: Session, connection_id: int, sender_id: int, text: str) -> ChatMessage:
    """
    Insert an unread message from one participant.

    Returns once the row is committed; delivery to subscribers happens through
    the event bus afterwards.
    """
    body = (text or "").strip()
    if not body:
        raise ValidationError("Message cannot be empty")
    if len(body) > settings.MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message must be {settings.MAX_MESSAGE_LENGTH} characters or less")

    with store_round_trip("send_message"):
        connection = connection_crud.get_connection(db, connection_id)
        if not connection:
            raise NotFoundError("Connection", connection_id)
        if not connection.is_participant(sender_id):
            raise AuthorizationError("Only the two participants can post in this conversation")

        message = chat_crud.create_message(db, connection_id, sender_id, body)
        db.commit()
        db.refresh(message)

    logger.debug("Message %s sent on connection %s by %s", message.id, connection_id, sender_id)
    return message


# ======================
# READ SIDE
# ======================

def history(db: Session, connection_id: int) -> List[ChatMessageView]:
    """Full thread, oldest first, with sender profiles resolved."""
    with store_round_trip("message_history"):
        messages = chat_crud.list_messages(db, connection_id)
        profiles = user_crud.get_profiles(db, {m.sender_id for m in messages})
        return [to_view(m, profiles[m.sender_id]) for m in messages]


def mark_read(db: Session, connection_id: int, viewer_id: int) -> int:
    """Flag every message the viewer did not send as read; returns how many changed."""
    with store_round_trip("mark_read"):
        unread = chat_crud.list_unread_inbound(db, connection_id, viewer_id)
        for message in unread:
            message.is_read = True
        if unread:
            db.commit()
    return len(unread)


def unread_count(db: Session, connection_id: int, viewer_id: int) -> int:
    with store_round_trip("unread_count"):
        return chat_crud.count_unread_inbound(db, connection_id, viewer_id)


def unread_counts_for_user(db: Session, user_id: int) -> UnreadSummary:
    """Unread inbound counts across the user's accepted connections."""
    with store_round_trip("unread_counts"):
        connection_ids = connection_crud.list_accepted_connection_ids(db, user_id)
        counts = chat_crud.count_unread_by_connection(db, connection_ids, user_id)
    counts = {cid: n for cid, n in counts.items() if n > 0}
    return UnreadSummary(counts=counts, total=sum(counts.values()))


def group_messages_by_day(messages: Iterable[ChatMessageView]) -> List[MessageDayGroup]:
    """Consecutive messages bucketed by the calendar day they were created on."""
    return [
        MessageDayGroup(day=day, messages=list(group))
        for day, group in groupby(messages, key=lambda m: m.created_at.date())
    ]


# ======================
# LIVE CHANNEL
# ======================

class MessageChannel:
    """
    Live feed of one connection's messages for one viewer.

    ``open`` is idempotent; the channel must be closed when the view goes away,
    preferably with ``async with``. When a viewer is given, inbound messages are
    marked read as they arrive.
    """

    def __init__(
        self,
        bus: EventBus,
        session_factory: sessionmaker,
        connection_id: int,
        viewer_id: Optional[int] = None,
    ):
        self.bus = bus
        self.session_factory = session_factory
        self.connection_id = connection_id
        self.viewer_id = viewer_id
        self._subscription: Optional[Subscription] = None
        self._on_message: Optional[Callable] = None
        self._seen: Set[int] = set()

    @property
    def is_open(self) -> bool:
        return self._subscription is not None and self._subscription.active

    async def open(self, on_message: Callable[[ChatMessageView], Any]) -> Subscription:
        self._on_message = on_message
        if self.is_open:
            return self._subscription
        self._subscription = await self.bus.subscribe(
            MESSAGES_TABLE,
            self._handle,
            events=(ChangeType.INSERT,),
            where={"connection_id": self.connection_id},
            name=f"messages-{self.connection_id}-{self.viewer_id}",
        )
        return self._subscription

    async def close(self) -> None:
        if self._subscription is not None:
            await self._subscription.unsubscribe()
            self._subscription = None
        self._seen.clear()

    async def __aenter__(self) -> "MessageChannel":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _load_sender(self, sender_id: int, inbound: bool) -> ProfileSummary:
        with self.session_factory() as db:
            sender = user_crud.get_profile(db, sender_id)
            if inbound:
                mark_read(db, self.connection_id, self.viewer_id)
        return sender

    async def _handle(self, event: ChangeEvent) -> None:
        row: Dict[str, Any] = event.new
        message_id = row.get("id")
        if message_id in self._seen:
            return
        self._seen.add(message_id)

        inbound = self.viewer_id is not None and row["sender_id"] != self.viewer_id
        try:
            sender = await asyncio.to_thread(self._load_sender, row["sender_id"], inbound)
        except Exception:
            # Let a redelivery of the same row try again.
            self._seen.discard(message_id)
            raise

        view = to_view(row, sender)
        if inbound:
            view.is_read = True
        if self._on_message is not None:
            result = self._on_message(view)
            if inspect.isawaitable(result):
                await result
