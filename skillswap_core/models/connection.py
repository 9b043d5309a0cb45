# skillswap_core/models/connection.py
import enum

from sqlalchemy import CheckConstraint, Column, Integer, String, Text, ForeignKey, TIMESTAMP
from sqlalchemy.orm import relationship

from skillswap_core.database import Base
from skillswap_core.models.common import utcnow


class ConnectionMode(str, enum.Enum):
    CHAT = "chat"
    VOICE_CALL = "voice_call"
    VIDEO_MEETING = "video_meeting"


class ConnectionStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"


class Connection(Base):
    __tablename__ = "skill_connections"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("skill_posts.id", ondelete="CASCADE"), nullable=False, index=True)
    requester_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    post_owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    connection_type = Column(String(20), nullable=False, default=ConnectionMode.CHAT.value)
    message = Column(Text)
    status = Column(String(20), nullable=False, default=ConnectionStatus.PENDING.value, index=True)
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("requester_id <> post_owner_id", name="check_not_self_connection"),
    )

    # UPDATEs match on the status that was read, so a row another session has
    # already moved on fails the flush with StaleDataError instead of being overwritten.
    __mapper_args__ = {"version_id_col": status, "version_id_generator": False}

    post = relationship("SkillPost", back_populates="connections")
    requester = relationship("User", foreign_keys=[requester_id])
    post_owner = relationship("User", foreign_keys=[post_owner_id])
    sessions = relationship("SkillSession", back_populates="connection")
    messages = relationship("ChatMessage", back_populates="connection", order_by="ChatMessage.created_at")

    def is_participant(self, user_id: int) -> bool:
        return user_id in (self.requester_id, self.post_owner_id)

    def counterpart_id(self, user_id: int) -> int:
        return self.post_owner_id if self.requester_id == user_id else self.requester_id
