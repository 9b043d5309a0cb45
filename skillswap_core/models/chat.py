# skillswap_core/models/chat.py
from sqlalchemy import Boolean, Column, Integer, Text, ForeignKey, TIMESTAMP
from sqlalchemy.orm import relationship

from skillswap_core.database import Base
from skillswap_core.models.common import utcnow


class ChatMessage(Base):
    __tablename__ = "skill_chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    connection_id = Column(Integer, ForeignKey("skill_connections.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False, index=True)

    connection = relationship("Connection", back_populates="messages")
    sender = relationship("User")


class TypingStatus(Base):
    """Last-write-wins presence flag; the composite key allows one row per (connection, user)."""

    __tablename__ = "skill_chat_typing"

    connection_id = Column(Integer, ForeignKey("skill_connections.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    is_typing = Column(Boolean, default=False, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)
