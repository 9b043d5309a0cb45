# skillswap_core/models/badge.py
from sqlalchemy import Column, Integer, String, Text, ForeignKey, TIMESTAMP, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from skillswap_core.database import Base
from skillswap_core.models.common import utcnow


class Badge(Base):
    __tablename__ = "skill_badges"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text)
    icon = Column(String(20))
    # Stored as the tagged form produced by schemas.badge; legacy key/threshold maps are still read.
    criteria = Column(JSON, nullable=True)
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)

    holders = relationship("UserBadge", back_populates="badge", cascade="all, delete-orphan")


class UserBadge(Base):
    __tablename__ = "user_skill_badges"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    badge_id = Column(Integer, ForeignKey("skill_badges.id", ondelete="CASCADE"), nullable=False, index=True)
    earned_at = Column(TIMESTAMP, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badge"),
    )

    badge = relationship("Badge", back_populates="holders")
    user = relationship("User")
