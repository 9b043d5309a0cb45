# skillswap_core/models/session.py
import enum

from sqlalchemy import CheckConstraint, Column, Date, Integer, String, Text, ForeignKey, TIMESTAMP
from sqlalchemy.orm import relationship

from skillswap_core.database import Base
from skillswap_core.models.common import utcnow


class MeetingPlatform(str, enum.Enum):
    GOOGLE_MEET = "google_meet"
    ZOOM = "zoom"
    IN_APP = "in_app"


class SessionStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SkillSession(Base):
    __tablename__ = "skill_sessions"

    id = Column(Integer, primary_key=True, index=True)
    connection_id = Column(Integer, ForeignKey("skill_connections.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    learner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    scheduled_date = Column(Date, nullable=False)
    scheduled_time = Column(String(5), nullable=False)  # HH:MM
    duration = Column(Integer, nullable=False, default=60)
    meeting_platform = Column(String(20), nullable=False)
    meeting_link = Column(String(500))
    notes = Column(Text)
    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED.value, index=True)
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("teacher_id <> learner_id", name="check_distinct_participants"),
    )

    # UPDATEs match on the status that was read, so a row another session has
    # already moved on fails the flush with StaleDataError instead of being overwritten.
    __mapper_args__ = {"version_id_col": status, "version_id_generator": False}

    connection = relationship("Connection", back_populates="sessions")
    teacher = relationship("User", foreign_keys=[teacher_id])
    learner = relationship("User", foreign_keys=[learner_id])
    reviews = relationship("Review", back_populates="session")

    def is_participant(self, user_id: int) -> bool:
        return user_id in (self.teacher_id, self.learner_id)

    def counterpart_id(self, user_id: int) -> int:
        return self.learner_id if self.teacher_id == user_id else self.teacher_id
