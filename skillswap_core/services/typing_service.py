"""Debounced "is typing" presence per (connection, user).

One ``TypingIndicator`` per open conversation. It remembers the last value it
wrote so repeated keystrokes cost one write per idle window, and it owns the
idle timer. Presence is best-effort: store failures are logged and dropped.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from sqlalchemy.orm import sessionmaker

from skillswap_core.config import settings
from skillswap_core.crud import chat as chat_crud
from skillswap_core.realtime.bus import ChangeEvent, ChangeType, EventBus, Subscription

logger = logging.getLogger(__name__)

TYPING_TABLE = "skill_chat_typing"


class TypingIndicator:
    def __init__(
        self,
        bus: EventBus,
        session_factory: sessionmaker,
        connection_id: int,
        user_id: int,
        idle_seconds: Optional[float] = None,
    ):
        self.bus = bus
        self.session_factory = session_factory
        self.connection_id = connection_id
        self.user_id = user_id
        self.idle_seconds = settings.TYPING_IDLE_SECONDS if idle_seconds is None else idle_seconds
        self.last_sent = False
        self.partner_is_typing = False
        self._timer: Optional[asyncio.Task] = None
        self._write_lock = asyncio.Lock()
        self._subscription: Optional[Subscription] = None
        self._on_partner_change: Optional[Callable[[bool], Any]] = None

    # ---------------- outgoing ----------------

    async def set_typing(self, is_typing: bool) -> None:
        if self.last_sent == is_typing:
            return
        self.last_sent = is_typing
        # Writes land in the order they were decided.
        async with self._write_lock:
            try:
                await asyncio.to_thread(self._write, is_typing)
            except Exception as exc:
                logger.warning(
                    "Typing status write failed (connection_id=%s, user_id=%s): %s",
                    self.connection_id, self.user_id, exc,
                )

    def _write(self, is_typing: bool) -> None:
        with self.session_factory() as db:
            chat_crud.upsert_typing_status(db, self.connection_id, self.user_id, is_typing)

    async def on_keystroke(self) -> None:
        await self.set_typing(True)
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._expire())

    async def _expire(self) -> None:
        await asyncio.sleep(self.idle_seconds)
        self._timer = None
        await self.set_typing(False)

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    # ---------------- incoming ----------------

    async def subscribe(self, on_partner_typing_changed: Callable[[bool], Any]) -> Subscription:
        """Watch the counterpart's flag; the current value is reported right away."""
        self._on_partner_change = on_partner_typing_changed
        if self._subscription is None or not self._subscription.active:
            self._subscription = await self.bus.subscribe(
                TYPING_TABLE,
                self._handle,
                events=(ChangeType.INSERT, ChangeType.UPDATE),
                where={"connection_id": self.connection_id},
                predicate=lambda event: event.new.get("user_id") != self.user_id,
                name=f"typing-{self.connection_id}-{self.user_id}",
            )

        # The feed only carries changes made after it opened.
        try:
            initial = await asyncio.to_thread(self._read_partner)
        except Exception as exc:
            logger.warning("Initial typing status lookup failed (connection_id=%s): %s", self.connection_id, exc)
            initial = False
        await self._report(initial)
        return self._subscription

    def _read_partner(self) -> bool:
        with self.session_factory() as db:
            row = chat_crud.get_partner_typing_status(db, self.connection_id, self.user_id)
            return bool(row.is_typing) if row else False

    async def _handle(self, event: ChangeEvent) -> None:
        await self._report(bool(event.new.get("is_typing")))

    async def _report(self, is_typing: bool) -> None:
        self.partner_is_typing = is_typing
        if self._on_partner_change is None:
            return
        result = self._on_partner_change(is_typing)
        if inspect.isawaitable(result):
            await result

    # ---------------- teardown ----------------

    async def close(self) -> None:
        self._cancel_timer()
        await self.set_typing(False)
        if self._subscription is not None:
            await self._subscription.unsubscribe()
            self._subscription = None
        self._on_partner_change = None

    async def __aenter__(self) -> "TypingIndicator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
