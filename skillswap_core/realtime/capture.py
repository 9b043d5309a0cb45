"""Publishes committed row changes from SQLAlchemy sessions onto an ``EventBus``.

Inserted and updated rows are collected at flush time, while attribute history
still holds the prior values, and published only once the surrounding
transaction commits. A rollback drops whatever was collected.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, sessionmaker

from skillswap_core.realtime.bus import ChangeEvent, ChangeType, EventBus

logger = logging.getLogger(__name__)

TRACKED_TABLES = frozenset({
    "skill_connections",
    "skill_sessions",
    "skill_chat_messages",
    "skill_chat_typing",
    "skill_reviews",
    "user_skill_badges",
})

_PENDING_KEY = "skillswap_pending_changes"


def row_snapshot(obj: Any) -> Dict[str, Any]:
    state = inspect(obj)
    return {attr.key: state.dict.get(attr.key) for attr in state.mapper.column_attrs}


def _previous_values(obj: Any) -> Optional[Dict[str, Any]]:
    state = inspect(obj)
    old = {}
    changed = False
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        if history.deleted:
            old[attr.key] = history.deleted[0]
            changed = True
        else:
            old[attr.key] = state.dict.get(attr.key)
    return old if changed else None


def _table_of(obj: Any) -> Optional[str]:
    return getattr(obj, "__tablename__", None)


def install_change_capture(
    session_factory: sessionmaker,
    bus: EventBus,
    tables: Iterable[str] = TRACKED_TABLES,
) -> Callable[[], None]:
    """Wire capture onto every session made by ``session_factory``; returns an uninstaller."""
    tracked = frozenset(tables)

    def after_flush(session: Session, flush_context) -> None:
        pending: List[ChangeEvent] = session.info.setdefault(_PENDING_KEY, [])
        for obj in session.new:
            table = _table_of(obj)
            if table in tracked:
                pending.append(ChangeEvent(table=table, type=ChangeType.INSERT, new=row_snapshot(obj)))
        for obj in session.dirty:
            table = _table_of(obj)
            if table not in tracked:
                continue
            old = _previous_values(obj)
            if old is None:
                continue
            pending.append(ChangeEvent(table=table, type=ChangeType.UPDATE, new=row_snapshot(obj), old=old))

    def after_commit(session: Session) -> None:
        changes = session.info.pop(_PENDING_KEY, [])
        for change in changes:
            delivered = bus.publish(change)
            logger.debug("Published %s on %s to %s subscriber(s)", change.type.value, change.table, delivered)

    def after_rollback(session: Session) -> None:
        dropped = session.info.pop(_PENDING_KEY, [])
        if dropped:
            logger.debug("Discarded %s uncommitted change(s) after rollback", len(dropped))

    event.listen(session_factory, "after_flush", after_flush)
    event.listen(session_factory, "after_commit", after_commit)
    event.listen(session_factory, "after_rollback", after_rollback)

    def uninstall() -> None:
        event.remove(session_factory, "after_flush", after_flush)
        event.remove(session_factory, "after_commit", after_commit)
        event.remove(session_factory, "after_rollback", after_rollback)

    return uninstall
