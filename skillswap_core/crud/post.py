from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from skillswap_core.models.post import SkillPost


def get_post(db: Session, post_id: int) -> Optional[SkillPost]:
    return db.query(SkillPost).filter(SkillPost.id == post_id).first()


def get_posts(db: Session, post_ids: Iterable[int]) -> Dict[int, SkillPost]:
    ids = set(post_ids)
    if not ids:
        return {}
    return {p.id: p for p in db.query(SkillPost).filter(SkillPost.id.in_(ids)).all()}
