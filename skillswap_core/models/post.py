# skillswap_core/models/post.py
import enum

from sqlalchemy import Column, Integer, String, Text, ForeignKey, TIMESTAMP
from sqlalchemy.orm import relationship

from skillswap_core.database import Base
from skillswap_core.models.common import utcnow


class PostType(str, enum.Enum):
    OFFER = "offer"      # owner teaches
    REQUEST = "request"  # owner wants to learn


class SkillPost(Base):
    """Offer-to-teach / request-to-learn listing. Read-only for the exchange engine."""

    __tablename__ = "skill_posts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    post_type = Column(String(20), nullable=False)
    skill_title = Column(String(150), nullable=False)
    category = Column(String(50), default="other")
    skill_level = Column(String(20), default="beginner")
    description = Column(Text)
    preferred_mode = Column(String(20), default="chat")
    session_duration = Column(Integer, default=60)
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    owner = relationship("User", back_populates="posts")
    connections = relationship("Connection", back_populates="post")
