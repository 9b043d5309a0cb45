from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List
from datetime import date, datetime

from skillswap_core.schemas.user import ProfileSummary


class MessageCreate(BaseModel):
    message: str = Field(..., min_length=1)


class ChatMessageView(BaseModel):
    id: int
    connection_id: int
    sender_id: int
    message: str
    is_read: bool
    created_at: datetime
    sender: ProfileSummary

    model_config = ConfigDict(from_attributes=True)


class MessageDayGroup(BaseModel):
    """Messages sharing one calendar day, for day-header rendering."""

    day: date
    messages: List[ChatMessageView]


class UnreadSummary(BaseModel):
    counts: Dict[int, int] = {}
    total: int = 0
