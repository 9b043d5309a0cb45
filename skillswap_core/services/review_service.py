# skillswap_core/services/review_service.py
"""
Review Service Layer
Business logic for review submission; triggers badge evaluation for the reviewee.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from skillswap_core.config import settings
from skillswap_core.crud import review as review_crud
from skillswap_core.crud import session as session_crud
from skillswap_core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    store_round_trip,
)
from skillswap_core.models.review import Review
from skillswap_core.models.session import SessionStatus
from skillswap_core.services import badge_service

logger = logging.getLogger(__name__)

ALREADY_REVIEWED = "already_reviewed"


def _already_reviewed(session_id: int, reviewer_id: int) -> ConflictError:
    return ConflictError(
        "You've already reviewed this session",
        details={"session_id": session_id, "reviewer_id": reviewer_id},
        code=ALREADY_REVIEWED,
    )


# ======================
# REVIEW SUBMISSION
# ======================

def submit_review(
    db: Session,
    session_id: int,
    reviewer_id: int,
    rating: int,
    feedback: Optional[str] = None
) -> Dict[str, Any]:
    """
    Submit a review for a completed session.

    Stores the review, then evaluates badges for the reviewee. Badge failures
    are absorbed by the badge engine and never fail the submission.

    Args:
        db: Database session
        session_id: Session identifier
        reviewer_id: Participant submitting the review
        rating: Rating value (1-5)
        feedback: Optional text feedback

    Returns:
        Dictionary with the stored review and any badges it unlocked

    Raises:
        ValidationError: Rating out of range or feedback too long
        NotFoundError: Session does not exist
        AuthorizationError: Reviewer is not a participant
        InvalidStateError: Session is not completed
        ConflictError: Reviewer already reviewed this session (code ``already_reviewed``)
    """
    if not isinstance(rating, int) or not (1 <= rating <= 5):
        raise ValidationError("Rating must be between 1 and 5")
    feedback = (feedback or "").strip() or None
    if feedback and len(feedback) > settings.MAX_FEEDBACK_LENGTH:
        raise ValidationError(f"Feedback must be {settings.MAX_FEEDBACK_LENGTH} characters or less")

    with store_round_trip("submit_review"):
        session = session_crud.get_session(db, session_id)
        if not session:
            raise NotFoundError("Session", session_id)
        if not session.is_participant(reviewer_id):
            raise AuthorizationError("Only the teacher or learner of this session can review it")
        if session.status != SessionStatus.COMPLETED.value:
            raise InvalidStateError(
                "Only completed sessions can be reviewed",
                current_status=session.status,
            )
        if review_crud.get_review(db, session_id, reviewer_id):
            raise _already_reviewed(session_id, reviewer_id)

        reviewee_id = session.counterpart_id(reviewer_id)
        try:
            review = review_crud.create_review(
                db=db,
                session_id=session_id,
                reviewer_id=reviewer_id,
                reviewee_id=reviewee_id,
                rating=rating,
                feedback=feedback
            )
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent submission from the same reviewer.
            db.rollback()
            raise _already_reviewed(session_id, reviewer_id)
        db.refresh(review)

    logger.info(
        "Review %s stored (session_id=%s, reviewer_id=%s, reviewee_id=%s, rating=%s)",
        review.id, session_id, reviewer_id, reviewee_id, rating,
    )

    awarded = badge_service.evaluate_badges(db, reviewee_id)

    return {
        "review": review,
        "awarded_badges": [b.name for b in awarded],
        "message": "Review submitted successfully",
    }


# ======================
# REVIEW RETRIEVAL
# ======================

def has_reviewed(db: Session, session_id: int, reviewer_id: int) -> bool:
    return review_crud.get_review(db, session_id, reviewer_id) is not None


def list_reviews_for_user(
    db: Session,
    user_id: int,
    limit: int = 50,
    offset: int = 0
) -> List[Review]:
    """
    Reviews a user has received, newest first.

    Args:
        db: Database session
        user_id: Reviewee user ID
        limit: Maximum reviews to return
        offset: Number of reviews to skip
    """
    return review_crud.get_reviews_for_user(db, user_id, limit, offset)
