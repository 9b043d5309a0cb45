# skillswap_core/crud/badge.py
from sqlalchemy.orm import Session
from typing import List, Optional, Set

from skillswap_core.models.badge import Badge, UserBadge


def list_badges(db: Session) -> List[Badge]:
    return db.query(Badge).order_by(Badge.id.asc()).all()


def get_badge_by_name(db: Session, name: str) -> Optional[Badge]:
    return db.query(Badge).filter(Badge.name == name).first()


def create_badge(
    db: Session,
    name: str,
    criteria: Optional[dict],
    description: Optional[str] = None,
    icon: Optional[str] = None,
) -> Badge:
    badge = Badge(name=name, criteria=criteria, description=description, icon=icon)
    db.add(badge)
    db.flush()
    return badge


def list_user_badges(db: Session, user_id: int) -> List[UserBadge]:
    return (
        db.query(UserBadge)
        .filter(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.asc(), UserBadge.id.asc())
        .all()
    )


def earned_badge_ids(db: Session, user_id: int) -> Set[int]:
    rows = db.query(UserBadge.badge_id).filter(UserBadge.user_id == user_id).all()
    return {r[0] for r in rows}


def count_user_badges(db: Session, user_id: int, badge_id: int) -> int:
    return db.query(UserBadge).filter(
        UserBadge.user_id == user_id,
        UserBadge.badge_id == badge_id,
    ).count()


def create_user_badge(db: Session, user_id: int, badge_id: int) -> UserBadge:
    user_badge = UserBadge(user_id=user_id, badge_id=badge_id)
    db.add(user_badge)
    db.flush()
    return user_badge
