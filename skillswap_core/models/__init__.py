# skillswap_core/models/__init__.py
# Import models in dependency order
from .user import User
from .post import SkillPost, PostType
from .connection import Connection, ConnectionMode, ConnectionStatus
from .session import SkillSession, SessionStatus, MeetingPlatform
from .chat import ChatMessage, TypingStatus
from .review import Review
from .badge import Badge, UserBadge

__all__ = [
    "User",
    "SkillPost",
    "PostType",
    "Connection",
    "ConnectionMode",
    "ConnectionStatus",
    "SkillSession",
    "SessionStatus",
    "MeetingPlatform",
    "ChatMessage",
    "TypingStatus",
    "Review",
    "Badge",
    "UserBadge",
]
