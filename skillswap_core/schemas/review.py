# skillswap_core/schemas/review.py
"""
Review Pydantic Schemas
Request/response models with validation
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import datetime


# ======================
# REVIEW SCHEMAS
# ======================

class ReviewCreate(BaseModel):
    """Schema for submitting a review"""
    session_id: int = Field(..., description="Session identifier")
    rating: int = Field(..., ge=1, le=5, description="Rating from 1 to 5 stars")
    feedback: Optional[str] = Field(None, max_length=1000, description="Optional feedback (max 1000 chars)")

    @field_validator("feedback")
    @classmethod
    def strip_feedback(cls, v):
        """Whitespace-only feedback is treated as no feedback"""
        if v is None:
            return None
        return v.strip() or None


class ReviewResponse(BaseModel):
    id: int
    session_id: int
    reviewer_id: int
    reviewee_id: int
    rating: int
    feedback: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewSubmitResponse(BaseModel):
    """Result of a review submission, including any badges it unlocked"""
    review: ReviewResponse
    awarded_badges: List[str] = []
    message: str = "Review submitted successfully"
