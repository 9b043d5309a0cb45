from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from skillswap_core.models.user import User
from skillswap_core.schemas.user import ProfileSummary


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_profile(db: Session, user_id: int) -> ProfileSummary:
    """Display profile for one user; a missing row resolves to an "Unknown" placeholder."""
    user = get_user(db, user_id)
    if not user:
        return ProfileSummary.unknown(user_id)
    return ProfileSummary.model_validate(user)


def get_profiles(db: Session, user_ids: Iterable[int]) -> Dict[int, ProfileSummary]:
    ids = set(user_ids)
    if not ids:
        return {}
    found = {
        u.id: ProfileSummary.model_validate(u)
        for u in db.query(User).filter(User.id.in_(ids)).all()
    }
    return {uid: found.get(uid) or ProfileSummary.unknown(uid) for uid in ids}
