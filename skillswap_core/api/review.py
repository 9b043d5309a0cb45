# skillswap_core/api/review.py
"""
Review API Router

Endpoints:
- POST /reviews - Review the other participant of a completed session
- GET /reviews/user/{user_id} - Reviews a user has received
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from skillswap_core.database import get_db
from skillswap_core.models.user import User
from skillswap_core.schemas.review import ReviewCreate, ReviewResponse, ReviewSubmitResponse
from skillswap_core.services import review_service
from skillswap_core.utils.security import get_current_user

router = APIRouter(prefix="/reviews", tags=["reviews"])


# ======================
# SUBMIT REVIEW
# ======================
@router.post("", response_model=ReviewSubmitResponse, status_code=status.HTTP_201_CREATED)
def submit_review(
    review: ReviewCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Submit a review for a completed session.

    Requirements:
    - Session must be completed
    - Caller must be the teacher or the learner of the session
    - One review per reviewer per session (409 ``already_reviewed`` otherwise)
    - Rating must be 1-5

    Returns:
        The stored review and the names of any badges the reviewee just earned
    """
    result = review_service.submit_review(
        db=db,
        session_id=review.session_id,
        reviewer_id=current_user.id,
        rating=review.rating,
        feedback=review.feedback
    )
    return ReviewSubmitResponse(
        review=ReviewResponse.model_validate(result["review"]),
        awarded_badges=result["awarded_badges"],
        message=result["message"],
    )


# ======================
# GET USER REVIEWS
# ======================
@router.get("/user/{user_id}", response_model=List[ReviewResponse])
def get_user_reviews(
    user_id: int,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db)
):
    """Reviews received by a user (public endpoint)."""
    return review_service.list_reviews_for_user(db, user_id, limit, offset)
