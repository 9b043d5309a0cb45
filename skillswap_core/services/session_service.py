# skillswap_core/services/session_service.py
"""
Session Scheduler
Creates sessions against a connection and owns their status transitions.

    scheduled --> completed
    scheduled --> cancelled

Either participant may complete or cancel. Completing a session does not touch
the connection and does not evaluate badges; badges are evaluated when a
review on the completed session is submitted.
"""

import logging
import secrets
import string
from datetime import date, datetime
from typing import Dict, FrozenSet, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from skillswap_core.config import settings
from skillswap_core.crud import connection as connection_crud
from skillswap_core.crud import post as post_crud
from skillswap_core.crud import session as session_crud
from skillswap_core.crud import user as user_crud
from skillswap_core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    store_round_trip,
)
from skillswap_core.models.common import utcnow
from skillswap_core.models.connection import Connection, ConnectionMode, ConnectionStatus
from skillswap_core.models.post import PostType, SkillPost
from skillswap_core.models.session import MeetingPlatform, SessionStatus, SkillSession
from skillswap_core.schemas.session import SessionDetail, SessionListing

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    SessionStatus.SCHEDULED.value: frozenset({SessionStatus.COMPLETED.value, SessionStatus.CANCELLED.value}),
    SessionStatus.IN_PROGRESS.value: frozenset(),
    SessionStatus.COMPLETED.value: frozenset(),
    SessionStatus.CANCELLED.value: frozenset(),
}

UPCOMING_STATUSES = frozenset({SessionStatus.SCHEDULED.value, SessionStatus.IN_PROGRESS.value})
PAST_STATUSES = frozenset({SessionStatus.COMPLETED.value, SessionStatus.CANCELLED.value})

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


# ======================
# HELPER FUNCTIONS
# ======================

def _random_token(length: int, alphabet: str = _TOKEN_ALPHABET) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_meeting_link(platform) -> str:
    """
    Placeholder meeting link for a platform.

    The format is fixed per platform and the token is random; nothing is
    registered with the provider, so the link is not guaranteed to be joinable.
    """
    try:
        platform = MeetingPlatform(platform)
    except ValueError:
        raise ValidationError(f"Unknown meeting platform '{platform}'")

    length = settings.MEETING_TOKEN_LENGTH
    if platform is MeetingPlatform.GOOGLE_MEET:
        letters = string.ascii_lowercase
        return "https://meet.google.com/{}-{}-{}".format(
            _random_token(3, letters), _random_token(4, letters), _random_token(3, letters)
        )
    if platform is MeetingPlatform.ZOOM:
        return f"https://zoom.us/j/{_random_token(length, string.digits)}"
    return f"{settings.MEETING_BASE_PATH.rstrip('/')}/{_random_token(length)}"


def _normalize_time(value: str) -> str:
    try:
        return datetime.strptime(value.strip(), "%H:%M").strftime("%H:%M")
    except (AttributeError, ValueError):
        raise ValidationError("Invalid scheduled_time format. Use HH:MM (e.g. '14:30')")


def _validate_duration(duration: int) -> int:
    allowed = tuple(settings.ALLOWED_SESSION_DURATIONS)
    if duration not in allowed:
        raise ValidationError(
            f"Duration must be one of {', '.join(str(d) for d in allowed)} minutes"
        )
    return duration


def assign_roles(post: SkillPost, other_party_id: int) -> Tuple[int, int]:
    """(teacher_id, learner_id): an offer's owner teaches, a request's owner learns."""
    if post.post_type == PostType.OFFER.value:
        return post.user_id, other_party_id
    if post.post_type == PostType.REQUEST.value:
        return other_party_id, post.user_id
    raise ValidationError(f"Post {post.id} has unknown type '{post.post_type}'")


def _resolve_connection(
    db: Session,
    post: SkillPost,
    requester_id: int,
    connection_id: Optional[int],
) -> Connection:
    if connection_id is not None:
        connection = connection_crud.get_connection(db, connection_id)
        if not connection:
            raise NotFoundError("Connection", connection_id)
        if connection.post_id != post.id:
            raise ValidationError("Connection does not belong to this post")
        if not connection.is_participant(requester_id):
            raise AuthorizationError("You are not part of this connection")
        if connection.status not in connection_crud.OPEN_STATUSES:
            raise InvalidStateError(
                f"Cannot schedule on a {connection.status} connection",
                current_status=connection.status,
            )
        return connection

    if post.user_id == requester_id:
        raise ValidationError("You cannot schedule a session on your own post")

    existing = connection_crud.find_open_connection(db, post.id, requester_id)
    if existing:
        return existing

    # Fast path: scheduling directly creates the request the owner still has to answer.
    return connection_crud.create_connection(
        db,
        post_id=post.id,
        requester_id=requester_id,
        post_owner_id=post.user_id,
        connection_type=ConnectionMode.VIDEO_MEETING.value,
    )


# ======================
# SCHEDULE
# ======================

def schedule(
    db: Session,
    *,
    post_id: int,
    requester_id: int,
    scheduled_date: date,
    scheduled_time: str,
    duration: int,
    platform,
    notes: Optional[str] = None,
    connection_id: Optional[int] = None,
) -> SkillSession:
    """
    Schedule a session on a post.

    Without ``connection_id`` the requester's open connection on the post is
    reused, or a new pending ``video_meeting`` connection is created first.
    Teacher and learner are fixed here from the post type.
    """
    time_value = _normalize_time(scheduled_time)
    _validate_duration(duration)
    link = generate_meeting_link(platform)
    platform_value = MeetingPlatform(platform).value

    with store_round_trip("schedule_session"):
        post = post_crud.get_post(db, post_id)
        if not post:
            raise NotFoundError("Post", post_id)

        try:
            connection = _resolve_connection(db, post, requester_id, connection_id)
            teacher_id, learner_id = assign_roles(post, connection.requester_id)
            session = session_crud.create_session(
                db,
                connection_id=connection.id,
                teacher_id=teacher_id,
                learner_id=learner_id,
                scheduled_date=scheduled_date,
                scheduled_time=time_value,
                duration=duration,
                meeting_platform=platform_value,
                meeting_link=link,
                notes=(notes or "").strip() or None,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(session)

    if connection.status != ConnectionStatus.ACCEPTED.value:
        logger.warning(
            "Session %s scheduled on connection %s that is still %s",
            session.id, connection.id, connection.status,
        )
    logger.info(
        "Session %s scheduled (connection_id=%s, teacher_id=%s, learner_id=%s, %s %s, %s min, %s)",
        session.id, connection.id, teacher_id, learner_id,
        scheduled_date.isoformat(), time_value, duration, platform_value,
    )
    return session


# ======================
# STATUS TRANSITIONS
# ======================

def update_status(db: Session, session_id: int, new_status: str, acting_user_id: int) -> SkillSession:
    """
    Complete or cancel a scheduled session.

    Repeating a transition that already happened fails with InvalidStateError
    rather than applying twice, also when the other participant's transition
    is committed between our read and our write.
    """
    new_status = str(getattr(new_status, "value", new_status))
    if new_status not in TRANSITIONS:
        raise ValidationError(f"Unknown session status '{new_status}'")

    with store_round_trip("update_session_status"):
        session = session_crud.get_session_for_update(db, session_id)
        if not session:
            db.rollback()
            raise NotFoundError("Session", session_id)
        if not session.is_participant(acting_user_id):
            db.rollback()
            raise AuthorizationError("Only the teacher or learner can update this session")
        current = session.status
        if new_status not in TRANSITIONS.get(current, frozenset()):
            db.rollback()
            raise InvalidStateError(
                f"Cannot move session from {current} to {new_status}",
                current_status=current,
                requested=new_status,
            )

        session.status = new_status
        session.updated_at = utcnow()
        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            latest = session_crud.get_session(db, session_id)
            current = latest.status if latest else None
            logger.warning(
                "Session %s changed to %s before %s could be applied",
                session_id, current, new_status,
            )
            raise InvalidStateError(
                f"Cannot move session from {current} to {new_status}",
                current_status=current,
                requested=new_status,
            )
        db.refresh(session)

    logger.info("Session %s %s by user %s", session_id, new_status, acting_user_id)
    return session


def get_session(db: Session, session_id: int) -> SkillSession:
    session = session_crud.get_session(db, session_id)
    if not session:
        raise NotFoundError("Session", session_id)
    return session


# ======================
# LISTING
# ======================

def list_for_user(db: Session, user_id: int) -> SessionListing:
    """Sessions the user teaches or learns in, split into upcoming and past."""
    with store_round_trip("list_sessions"):
        sessions = session_crud.list_sessions_for_user(db, user_id)
        profiles = user_crud.get_profiles(db, [s.counterpart_id(user_id) for s in sessions])

        listing = SessionListing()
        for s in sessions:
            connection = s.connection
            post = connection.post if connection else None
            detail = SessionDetail(
                id=s.id,
                connection_id=s.connection_id,
                teacher_id=s.teacher_id,
                learner_id=s.learner_id,
                scheduled_date=s.scheduled_date,
                scheduled_time=s.scheduled_time,
                duration=s.duration,
                meeting_platform=s.meeting_platform,
                meeting_link=s.meeting_link,
                notes=s.notes,
                status=s.status,
                created_at=s.created_at,
                updated_at=s.updated_at,
                is_teacher=s.teacher_id == user_id,
                counterpart=profiles[s.counterpart_id(user_id)],
                post_title=post.skill_title if post else None,
                connection_status=connection.status if connection else None,
            )
            if s.status in UPCOMING_STATUSES:
                listing.upcoming.append(detail)
            elif s.status in PAST_STATUSES:
                listing.past.append(detail)
        return listing
