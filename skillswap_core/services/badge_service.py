# skillswap_core/services/badge_service.py
"""
Badge Evaluation
Recomputes a user's teaching/learning statistics and awards every badge whose
criteria they now meet. Runs right after a review is stored; failures here are
logged and never reach the review submitter.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from skillswap_core.crud import badge as badge_crud
from skillswap_core.crud import review as review_crud
from skillswap_core.crud import session as session_crud
from skillswap_core.models.badge import Badge, UserBadge
from skillswap_core.schemas.badge import (
    AnyOf,
    BadgeCriteria,
    BadgeOverview,
    BadgeProgress,
    FiveStarReviews,
    SessionsLearned,
    SessionsTaught,
    UserStats,
    dump_criteria,
    parse_criteria,
)

logger = logging.getLogger(__name__)


DEFAULT_BADGES = [
    {
        "name": "First Five-Star",
        "description": "Received your first 5-star review",
        "icon": "⭐",
        "criteria": FiveStarReviews(minimum=1),
    },
    {
        "name": "Star Mentor",
        "description": "Taught 5 sessions with an average rating of 4.5 or higher",
        "icon": "🏆",
        "criteria": SessionsTaught(minimum=5, min_avg_rating=4.5),
    },
    {
        "name": "Crowd Favourite",
        "description": "Received three 5-star reviews",
        "icon": "🌟",
        "criteria": FiveStarReviews(minimum=3),
    },
    {
        "name": "Eager Learner",
        "description": "Completed 3 sessions as a learner",
        "icon": "📚",
        "criteria": SessionsLearned(minimum=3),
    },
    {
        "name": "First Lesson",
        "description": "Taught your first session",
        "icon": "🎓",
        "criteria": SessionsTaught(minimum=1),
    },
]


# ======================
# STATS & CRITERIA
# ======================

def compute_user_stats(db: Session, user_id: int) -> UserStats:
    avg_rating, total, five_star = review_crud.calculate_received_ratings(db, user_id)
    return UserStats(
        user_id=user_id,
        sessions_taught=session_crud.count_completed_as_teacher(db, user_id),
        sessions_learned=session_crud.count_completed_as_learner(db, user_id),
        five_star_reviews=five_star,
        total_reviews=total,
        average_rating=avg_rating,
    )


def is_satisfied(criteria: BadgeCriteria, stats: UserStats) -> bool:
    if isinstance(criteria, SessionsTaught):
        if stats.sessions_taught < criteria.minimum:
            return False
        return criteria.min_avg_rating is None or stats.average_rating >= criteria.min_avg_rating
    if isinstance(criteria, SessionsLearned):
        return stats.sessions_learned >= criteria.minimum
    if isinstance(criteria, FiveStarReviews):
        return stats.five_star_reviews >= criteria.minimum
    if isinstance(criteria, AnyOf):
        return any(is_satisfied(option, stats) for option in criteria.options)
    raise TypeError(f"Unhandled badge criteria: {type(criteria).__name__}")


def _criteria_of(badge: Badge) -> Optional[BadgeCriteria]:
    try:
        return parse_criteria(badge.criteria)
    except ValueError as exc:
        logger.warning("Badge %s has unreadable criteria %r: %s", badge.id, badge.criteria, exc)
        return None


# ======================
# AWARDING
# ======================

def award_badge(db: Session, user_id: int, badge_id: int) -> Optional[UserBadge]:
    """
    Insert the (user, badge) row unless it already exists.

    Returns the new row, or None when the user already held the badge. Each
    award commits on its own; losing a race on the unique key is a no-op.
    """
    if badge_crud.count_user_badges(db, user_id, badge_id):
        return None
    try:
        user_badge = badge_crud.create_user_badge(db, user_id, badge_id)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.debug("Badge %s already held by user %s", badge_id, user_id)
        return None
    return user_badge


def evaluate_badges(db: Session, user_id: int) -> List[Badge]:
    """
    Award every catalog badge the user newly qualifies for.

    Never raises: this is a side effect of review submission and must not
    block it. Returns the badges awarded by this call.
    """
    awarded: List[Badge] = []
    try:
        stats = compute_user_stats(db, user_id)
        held = badge_crud.earned_badge_ids(db, user_id)
        for badge in badge_crud.list_badges(db):
            if badge.id in held:
                continue
            criteria = _criteria_of(badge)
            if criteria is None or not is_satisfied(criteria, stats):
                continue
            if award_badge(db, user_id, badge.id) is not None:
                awarded.append(badge)
    except Exception:
        logger.exception("Badge evaluation failed for user %s", user_id)
        try:
            db.rollback()
        except Exception:
            logger.exception("Rollback after badge evaluation failure also failed")
        return []

    for badge in awarded:
        logger.info("Awarded badge '%s' to user %s", badge.name, user_id)
    return awarded


# ======================
# CATALOG & READS
# ======================

def seed_default_badges(db: Session) -> int:
    """Insert any missing default badges; returns how many were created."""
    created = 0
    for entry in DEFAULT_BADGES:
        if badge_crud.get_badge_by_name(db, entry["name"]):
            continue
        badge_crud.create_badge(
            db,
            name=entry["name"],
            description=entry["description"],
            icon=entry["icon"],
            criteria=dump_criteria(entry["criteria"]),
        )
        created += 1
    db.commit()
    if created:
        logger.info("Seeded %s default badge(s)", created)
    return created


def list_badges(db: Session) -> List[Badge]:
    return badge_crud.list_badges(db)


def list_user_badges(db: Session, user_id: int) -> List[UserBadge]:
    return badge_crud.list_user_badges(db, user_id)


def badge_overview(db: Session, user_id: int) -> BadgeOverview:
    """Whole catalog with the user's earned flags, plus the stats behind them."""
    earned = {ub.badge_id: ub for ub in badge_crud.list_user_badges(db, user_id)}
    badges = []
    for badge in badge_crud.list_badges(db):
        holder = earned.get(badge.id)
        badges.append(
            BadgeProgress(
                id=badge.id,
                name=badge.name,
                description=badge.description,
                icon=badge.icon,
                criteria=badge.criteria,
                earned=holder is not None,
                earned_at=holder.earned_at if holder else None,
            )
        )
    return BadgeOverview(stats=compute_user_stats(db, user_id), badges=badges)
