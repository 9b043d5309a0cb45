from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime

from skillswap_core.models.connection import ConnectionMode
from skillswap_core.schemas.user import ProfileSummary


# ======================
# CONNECTION REQUEST MODELS
# ======================

class ConnectionCreate(BaseModel):
    post_id: int
    connection_type: ConnectionMode = ConnectionMode.CHAT
    message: Optional[str] = Field(None, max_length=1000)

    @field_validator("message")
    @classmethod
    def strip_message(cls, v):
        if v is None:
            return None
        return v.strip() or None


class ConnectionDecision(BaseModel):
    decision: Literal["accepted", "declined"]


# ======================
# CONNECTION RESPONSE MODELS
# ======================

class PostSummary(BaseModel):
    id: int
    post_type: str
    skill_title: str
    category: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ConnectionResponse(BaseModel):
    id: int
    post_id: int
    requester_id: int
    post_owner_id: int
    connection_type: str
    message: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ConnectionDetail(ConnectionResponse):
    """Connection as seen by one participant."""

    is_incoming: bool
    counterpart: ProfileSummary
    post: Optional[PostSummary] = None


class ConnectionListing(BaseModel):
    """A user's connections split by who asked."""

    incoming: List[ConnectionDetail] = []
    outgoing: List[ConnectionDetail] = []
