from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Set, Tuple

from sqlalchemy.orm import sessionmaker

from skillswap_core.config import settings
from skillswap_core.crud import connection as connection_crud
from skillswap_core.crud import post as post_crud
from skillswap_core.crud import user as user_crud
from skillswap_core.models.connection import ConnectionStatus
from skillswap_core.realtime.bus import ChangeEvent, ChangeType, EventBus, Subscription

logger = logging.getLogger(__name__)

CONNECTIONS_TABLE = "skill_connections"
MESSAGES_TABLE = "skill_chat_messages"
UNKNOWN_PERSON = "Someone"
UNKNOWN_POST = "your post"


class AlertKind(str, enum.Enum):
    NEW_MESSAGE = "new_message"
    CONNECTION_REQUEST = "connection_request"
    CONNECTION_ACCEPTED = "connection_accepted"


@dataclass(frozen=True)
class Alert:
    kind: AlertKind
    title: str
    description: str
    connection_id: Optional[int] = None
    level: str = "info"


def truncate_preview(text: str, limit: Optional[int] = None) -> str:
    limit = settings.MESSAGE_PREVIEW_CHARS if limit is None else limit
    text = text or ""
    return text[:limit] + ("..." if len(text) > limit else "")


class NotificationDispatcher:
    """
    Ambient alerts for one signed-in user, independent of any open conversation.

    Construct one per authenticated session, ``start`` it on login and ``stop``
    it on logout. Change events may arrive twice or out of causal order, so
    already handled rows are remembered here. Nothing raised while building an
    alert escapes; a failed alert is simply not shown.
    """

    def __init__(
        self,
        bus: EventBus,
        session_factory: sessionmaker,
        user_id: int,
        on_alert: Callable[[Alert], Any],
        preview_chars: Optional[int] = None,
    ):
        self.bus = bus
        self.session_factory = session_factory
        self.user_id = user_id
        self.on_alert = on_alert
        self.preview_chars = preview_chars
        self._subscriptions: List[Subscription] = []
        self._processed_messages: Set[int] = set()
        self._processed_connections: Set[int] = set()
        self._processed_acceptances: Set[int] = set()

    @property
    def running(self) -> bool:
        return bool(self._subscriptions)

    async def start(self) -> None:
        if self.running:
            return
        self._subscriptions = [
            await self.bus.subscribe(
                MESSAGES_TABLE,
                self._on_message,
                events=(ChangeType.INSERT,),
                name=f"alerts-messages-{self.user_id}",
            ),
            await self.bus.subscribe(
                CONNECTIONS_TABLE,
                self._on_connection_created,
                events=(ChangeType.INSERT,),
                name=f"alerts-connections-new-{self.user_id}",
            ),
            await self.bus.subscribe(
                CONNECTIONS_TABLE,
                self._on_connection_updated,
                events=(ChangeType.UPDATE,),
                name=f"alerts-connections-updated-{self.user_id}",
            ),
        ]
        logger.info("Notification dispatcher started for user %s", self.user_id)

    async def stop(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            await subscription.unsubscribe()
        self._processed_messages.clear()
        self._processed_connections.clear()
        self._processed_acceptances.clear()
        if subscriptions:
            logger.info("Notification dispatcher stopped for user %s", self.user_id)

    async def __aenter__(self) -> "NotificationDispatcher":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # ---------------- lookups (run on a worker thread) ----------------

    def _load_message_context(self, connection_id: int, sender_id: int) -> Tuple[Optional[bool], str]:
        """(is participant, sender name); participant is None when the connection is not visible."""
        with self.session_factory() as db:
            connection = connection_crud.get_connection(db, connection_id)
            if connection is None:
                return None, UNKNOWN_PERSON
            if not connection.is_participant(self.user_id):
                return False, UNKNOWN_PERSON
            sender = user_crud.get_user(db, sender_id)
            return True, sender.full_name if sender else UNKNOWN_PERSON

    def _load_request_context(self, requester_id: int, post_id: int) -> Tuple[str, str]:
        with self.session_factory() as db:
            requester = user_crud.get_user(db, requester_id)
            post = post_crud.get_post(db, post_id)
            return (
                requester.full_name if requester else UNKNOWN_PERSON,
                post.skill_title if post else UNKNOWN_POST,
            )

    def _load_user_name(self, user_id: int) -> str:
        with self.session_factory() as db:
            user = user_crud.get_user(db, user_id)
            return user.full_name if user else UNKNOWN_PERSON

    # ---------------- handlers ----------------

    async def _on_message(self, event: ChangeEvent) -> None:
        row = event.new
        message_id = row.get("id")
        if row.get("sender_id") == self.user_id or message_id in self._processed_messages:
            return
        self._processed_messages.add(message_id)

        try:
            participant, sender_name = await asyncio.to_thread(
                self._load_message_context, row.get("connection_id"), row.get("sender_id")
            )
        except Exception as exc:
            self._processed_messages.discard(message_id)
            logger.warning("Message alert lookup failed (message_id=%s): %s", message_id, exc)
            return
        if participant is None:
            # Not visible yet; let a redelivery try again.
            self._processed_messages.discard(message_id)
            return
        if not participant:
            return

        await self._emit(
            Alert(
                kind=AlertKind.NEW_MESSAGE,
                title=f"New message from {sender_name}",
                description=truncate_preview(row.get("message") or "", self.preview_chars),
                connection_id=row.get("connection_id"),
            )
        )

    async def _on_connection_created(self, event: ChangeEvent) -> None:
        row = event.new
        connection_id = row.get("id")
        if row.get("post_owner_id") != self.user_id or connection_id in self._processed_connections:
            return
        self._processed_connections.add(connection_id)

        try:
            requester_name, post_title = await asyncio.to_thread(
                self._load_request_context, row.get("requester_id"), row.get("post_id")
            )
        except Exception as exc:
            logger.warning("Connection alert lookup failed (connection_id=%s): %s", connection_id, exc)
            requester_name, post_title = UNKNOWN_PERSON, UNKNOWN_POST

        await self._emit(
            Alert(
                kind=AlertKind.CONNECTION_REQUEST,
                title="New connection request!",
                description=f'{requester_name} wants to connect for "{post_title}"',
                connection_id=connection_id,
            )
        )

    async def _on_connection_updated(self, event: ChangeEvent) -> None:
        row, old = event.new, event.old or {}
        connection_id = row.get("id")
        if row.get("requester_id") != self.user_id:
            return
        if row.get("status") != ConnectionStatus.ACCEPTED.value or old.get("status") != ConnectionStatus.PENDING.value:
            return
        if connection_id in self._processed_acceptances:
            return
        self._processed_acceptances.add(connection_id)

        try:
            owner_name = await asyncio.to_thread(self._load_user_name, row.get("post_owner_id"))
        except Exception as exc:
            logger.warning("Acceptance alert lookup failed (connection_id=%s): %s", connection_id, exc)
            owner_name = UNKNOWN_PERSON

        await self._emit(
            Alert(
                kind=AlertKind.CONNECTION_ACCEPTED,
                title="Connection accepted!",
                description=f"{owner_name} accepted your connection request. You can now chat!",
                connection_id=connection_id,
                level="success",
            )
        )

    async def _emit(self, alert: Alert) -> None:
        try:
            result = self.on_alert(alert)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.warning("Alert delivery failed (user_id=%s, kind=%s): %s", self.user_id, alert.kind.value, exc)
