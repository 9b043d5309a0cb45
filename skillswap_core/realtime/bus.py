"""In-process change-event bus.

A subscription is scoped to one table, a set of change types and an optional row
filter. Each subscription drains its own queue with a single worker task, so
events reach a handler in the order they were published to that subscription.
Nothing is ordered across subscriptions, and the same row change may be
published more than once; handlers must be idempotent.

``publish`` may be called from any thread. Request handlers run by FastAPI in
its worker threadpool commit rows there, and the committed changes are handed
to the event loop that owns each subscription.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

logger = logging.getLogger(__name__)


class ChangeType(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    type: ChangeType
    new: Dict[str, Any]
    old: Optional[Dict[str, Any]] = None


Handler = Callable[[ChangeEvent], Union[Awaitable[None], None]]
Predicate = Callable[[ChangeEvent], bool]


class Subscription:
    """A live listener. Release it with ``unsubscribe`` or ``async with``."""

    def __init__(
        self,
        bus: "EventBus",
        table: str,
        handler: Handler,
        events: Iterable[ChangeType],
        predicate: Optional[Predicate],
        name: str,
    ):
        self.bus = bus
        self.table = table
        self.events = frozenset(ChangeType(e) for e in events)
        self.name = name
        self._handler = handler
        self._predicate = predicate
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._inflight = 0
        self.active = True
        self._worker = self._loop.create_task(self._run(), name=f"bus:{name}")

    def matches(self, event: ChangeEvent) -> bool:
        if not self.active or event.table != self.table or event.type not in self.events:
            return False
        if self._predicate is None:
            return True
        try:
            return bool(self._predicate(event))
        except Exception:
            logger.exception("Subscription filter failed (subscription=%s)", self.name)
            return False

    def deliver(self, event: ChangeEvent) -> None:
        try:
            self._loop.call_soon_threadsafe(self._enqueue, event)
        except RuntimeError:
            # Owning loop already closed; the subscription is effectively gone.
            logger.debug("Dropping event for closed loop (subscription=%s)", self.name)

    @property
    def pending(self) -> bool:
        return self._inflight > 0

    async def join(self) -> None:
        await self._queue.join()

    async def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self.bus._remove(self)
        self._worker.cancel()
        while not self._queue.empty():
            self._queue.get_nowait()
            self._inflight -= 1
            self._queue.task_done()
        if asyncio.current_task() is self._worker:
            return
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        logger.debug("Unsubscribed %s", self.name)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.unsubscribe()

    def _enqueue(self, event: ChangeEvent) -> None:
        if not self.active:
            return
        self._inflight += 1
        self._queue.put_nowait(event)

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                result = self._handler(event)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Realtime handler failed (subscription=%s, table=%s, type=%s)",
                    self.name,
                    event.table,
                    event.type.value,
                )
            finally:
                self._inflight -= 1
                self._queue.task_done()


class EventBus:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []
        self._counter = 0

    async def subscribe(
        self,
        table: str,
        handler: Handler,
        *,
        events: Iterable[Union[ChangeType, str]] = (ChangeType.INSERT,),
        where: Optional[Dict[str, Any]] = None,
        predicate: Optional[Predicate] = None,
        name: Optional[str] = None,
    ) -> Subscription:
        """Open a subscription. ``where`` is an equality filter on the new row."""
        if where:
            equality = dict(where)
            extra = predicate

            def _filtered(event: ChangeEvent) -> bool:
                if any(event.new.get(key) != value for key, value in equality.items()):
                    return False
                return extra(event) if extra is not None else True

            predicate = _filtered

        with self._lock:
            self._counter += 1
            label = name or f"{table}-{self._counter}"
        subscription = Subscription(self, table, handler, events, predicate, label)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug("Subscribed %s to %s", label, table)
        await asyncio.sleep(0)
        return subscription

    def publish(self, event: ChangeEvent) -> int:
        """Fan an event out to matching subscriptions; returns how many matched."""
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(event)]
        for subscription in targets:
            subscription.deliver(event)
        return len(targets)

    def subscription_count(self, table: Optional[str] = None) -> int:
        with self._lock:
            if table is None:
                return len(self._subscriptions)
            return sum(1 for s in self._subscriptions if s.table == table)

    async def drain(self) -> None:
        """Wait until every delivered event, including follow-ups, has been handled."""
        while True:
            await asyncio.sleep(0)
            with self._lock:
                busy = [s for s in self._subscriptions if s.pending]
            if not busy:
                await asyncio.sleep(0)
                with self._lock:
                    if not any(s.pending for s in self._subscriptions):
                        return
                continue
            for subscription in busy:
                await subscription.join()

    async def close(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            await subscription.unsubscribe()

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
