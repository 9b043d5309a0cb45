from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Literal, Optional
from datetime import date, datetime

from skillswap_core.models.session import MeetingPlatform
from skillswap_core.schemas.user import ProfileSummary

# ======================
# SESSION REQUEST MODELS
# ======================


class SessionSchedule(BaseModel):
    """Scheduling form submitted by the requester."""

    post_id: int
    connection_id: Optional[int] = None
    scheduled_date: date
    scheduled_time: str = Field("10:00", description="24h HH:MM")
    duration: int = 60
    meeting_platform: MeetingPlatform = MeetingPlatform.GOOGLE_MEET
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v):
        if v is None:
            return None
        return v.strip() or None


class SessionStatusUpdate(BaseModel):
    status: Literal["completed", "cancelled"]


# ======================
# SESSION RESPONSE MODELS
# ======================

class SessionResponse(BaseModel):
    id: int
    connection_id: int
    teacher_id: int
    learner_id: int
    scheduled_date: date
    scheduled_time: str
    duration: int
    meeting_platform: str
    meeting_link: Optional[str] = None
    notes: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SessionDetail(SessionResponse):
    """Session enriched for one participant's listing."""

    is_teacher: bool
    counterpart: ProfileSummary
    post_title: Optional[str] = None
    connection_status: Optional[str] = None


class SessionListing(BaseModel):
    upcoming: List[SessionDetail] = []
    past: List[SessionDetail] = []
