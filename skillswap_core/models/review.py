# skillswap_core/models/review.py
from sqlalchemy import Column, Integer, Text, ForeignKey, TIMESTAMP, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship

from skillswap_core.database import Base
from skillswap_core.models.common import utcnow


class Review(Base):
    __tablename__ = "skill_reviews"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("skill_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    feedback = Column(Text)
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)

    # Constraints
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="check_rating_range"),
        UniqueConstraint("session_id", "reviewer_id", name="uq_review_session_reviewer"),
    )

    # Relationships
    session = relationship("SkillSession", back_populates="reviews")
    reviewer = relationship("User", foreign_keys=[reviewer_id])
    reviewee = relationship("User", foreign_keys=[reviewee_id])
