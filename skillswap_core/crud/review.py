# skillswap_core/crud/review.py
"""
Review CRUD Operations
Core database operations for session reviews
"""

from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional, List, Tuple

from skillswap_core.models.review import Review


# ======================
# REVIEW CRUD
# ======================

def create_review(
    db: Session,
    session_id: int,
    reviewer_id: int,
    reviewee_id: int,
    rating: int,
    feedback: Optional[str] = None
) -> Review:
    """
    Create a new review for a completed session.

    Args:
        db: Database session
        session_id: Session identifier
        reviewer_id: Participant writing the review
        reviewee_id: The other participant
        rating: Rating value (1-5)
        feedback: Optional text feedback

    Returns:
        Created Review object

    Raises:
        ValueError: If rating is out of range
        sqlalchemy.exc.IntegrityError: If (session, reviewer) already has a review
    """
    if not (1 <= rating <= 5):
        raise ValueError("Rating must be between 1 and 5")

    review = Review(
        session_id=session_id,
        reviewer_id=reviewer_id,
        reviewee_id=reviewee_id,
        rating=rating,
        feedback=feedback
    )

    db.add(review)
    db.flush()
    return review


def get_review(db: Session, session_id: int, reviewer_id: int) -> Optional[Review]:
    """
    Get the review one participant left on a session.

    Args:
        db: Database session
        session_id: Session identifier
        reviewer_id: Reviewer user ID

    Returns:
        Review object or None if this participant has not reviewed yet
    """
    return db.query(Review).filter(
        Review.session_id == session_id,
        Review.reviewer_id == reviewer_id,
    ).first()


def get_reviews_for_user(
    db: Session,
    reviewee_id: int,
    limit: int = 50,
    offset: int = 0
) -> List[Review]:
    """
    Get reviews a user has received, newest first.

    Args:
        db: Database session
        reviewee_id: User ID
        limit: Maximum reviews to return
        offset: Number of reviews to skip

    Returns:
        List of Review objects
    """
    return (
        db.query(Review)
        .filter(Review.reviewee_id == reviewee_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )


def calculate_received_ratings(db: Session, reviewee_id: int) -> Tuple[float, int, int]:
    """
    Aggregate ratings received by a user.

    Args:
        db: Database session
        reviewee_id: User ID

    Returns:
        Tuple of (average_rating, total_reviews, five_star_reviews)
    """
    result = db.query(
        func.avg(Review.rating).label('avg_rating'),
        func.count(Review.id).label('total')
    ).filter(
        Review.reviewee_id == reviewee_id
    ).first()

    five_star = db.query(Review).filter(
        Review.reviewee_id == reviewee_id,
        Review.rating == 5,
    ).count()

    avg_rating = float(result.avg_rating) if result.avg_rating else 0.0
    total = int(result.total) if result.total else 0

    return (avg_rating, total, five_star)
