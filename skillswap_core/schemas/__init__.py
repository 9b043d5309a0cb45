# skillswap_core/schemas/__init__.py

# Profile schemas
from .user import ProfileSummary

# Connection schemas
from .connection import (
    ConnectionCreate,
    ConnectionDecision,
    ConnectionResponse,
    ConnectionDetail,
    ConnectionListing,
    PostSummary,
)

# Session schemas
from .session import (
    SessionSchedule,
    SessionStatusUpdate,
    SessionResponse,
    SessionDetail,
    SessionListing,
)

# Chat schemas
from .chat import ChatMessageView, MessageCreate, MessageDayGroup, UnreadSummary

# Review & badge schemas
from .review import ReviewCreate, ReviewResponse, ReviewSubmitResponse
from .badge import (
    BadgeCriteria,
    SessionsTaught,
    SessionsLearned,
    FiveStarReviews,
    AnyOf,
    UserStats,
    BadgeResponse,
    BadgeProgress,
    BadgeOverview,
    parse_criteria,
)

__all__ = [
    "ProfileSummary",
    "ConnectionCreate",
    "ConnectionDecision",
    "ConnectionResponse",
    "ConnectionDetail",
    "ConnectionListing",
    "PostSummary",
    "SessionSchedule",
    "SessionStatusUpdate",
    "SessionResponse",
    "SessionDetail",
    "SessionListing",
    "ChatMessageView",
    "MessageCreate",
    "MessageDayGroup",
    "UnreadSummary",
    "ReviewCreate",
    "ReviewResponse",
    "ReviewSubmitResponse",
    "BadgeCriteria",
    "SessionsTaught",
    "SessionsLearned",
    "FiveStarReviews",
    "AnyOf",
    "UserStats",
    "BadgeResponse",
    "BadgeProgress",
    "BadgeOverview",
    "parse_criteria",
]
