# skillswap_core/crud/session.py
from datetime import date
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional

from skillswap_core.models.session import SkillSession, SessionStatus


def create_session(
    db: Session,
    *,
    connection_id: int,
    teacher_id: int,
    learner_id: int,
    scheduled_date: date,
    scheduled_time: str,
    duration: int,
    meeting_platform: str,
    meeting_link: Optional[str],
    notes: Optional[str],
) -> SkillSession:
    session = SkillSession(
        connection_id=connection_id,
        teacher_id=teacher_id,
        learner_id=learner_id,
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        duration=duration,
        meeting_platform=meeting_platform,
        meeting_link=meeting_link,
        notes=notes,
        status=SessionStatus.SCHEDULED.value,
    )
    db.add(session)
    db.flush()
    return session


def get_session(db: Session, session_id: int) -> Optional[SkillSession]:
    return db.query(SkillSession).filter(SkillSession.id == session_id).first()


def get_session_for_update(db: Session, session_id: int) -> Optional[SkillSession]:
    return (
        db.query(SkillSession)
        .filter(SkillSession.id == session_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def list_sessions_for_user(db: Session, user_id: int) -> List[SkillSession]:
    return (
        db.query(SkillSession)
        .filter(or_(SkillSession.teacher_id == user_id, SkillSession.learner_id == user_id))
        .order_by(SkillSession.scheduled_date.desc(), SkillSession.scheduled_time.desc(), SkillSession.id.desc())
        .all()
    )


def count_completed_as_teacher(db: Session, user_id: int) -> int:
    return db.query(SkillSession).filter(
        SkillSession.teacher_id == user_id,
        SkillSession.status == SessionStatus.COMPLETED.value,
    ).count()


def count_completed_as_learner(db: Session, user_id: int) -> int:
    return db.query(SkillSession).filter(
        SkillSession.learner_id == user_id,
        SkillSession.status == SessionStatus.COMPLETED.value,
    ).count()
