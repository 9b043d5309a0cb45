# skillswap_core/api/__init__.py

from . import badge
from . import chat
from . import connection
from . import review
from . import session

__all__ = [
    "connection",
    "session",
    "chat",
    "review",
    "badge",
]
