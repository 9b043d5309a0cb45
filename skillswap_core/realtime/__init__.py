from .bus import ChangeEvent, ChangeType, EventBus, Subscription
from .capture import TRACKED_TABLES, install_change_capture

__all__ = [
    "ChangeEvent",
    "ChangeType",
    "EventBus",
    "Subscription",
    "TRACKED_TABLES",
    "install_change_capture",
]
