"""
Session scheduling: meeting links, role assignment, the no-connection fast path
and status transitions.
"""

import re
from datetime import date, timedelta

import pytest

from skillswap_core.crud import session as session_crud
from skillswap_core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from skillswap_core.models.connection import Connection
from skillswap_core.models.session import MeetingPlatform, SkillSession
from skillswap_core.services import connection_service, session_service

NEXT_WEEK = date.today() + timedelta(days=7)


def _schedule(db, post, requester, **overrides):
    params = dict(
        post_id=post.id,
        requester_id=requester.id,
        scheduled_date=NEXT_WEEK,
        scheduled_time="14:30",
        duration=60,
        platform=MeetingPlatform.GOOGLE_MEET,
    )
    params.update(overrides)
    return session_service.schedule(db, **params)


# ======================
# MEETING LINKS
# ======================

def test_meeting_link_formats():
    meet = session_service.generate_meeting_link("google_meet")
    zoom = session_service.generate_meeting_link(MeetingPlatform.ZOOM)
    in_app = session_service.generate_meeting_link("in_app")

    assert re.fullmatch(r"https://meet\.google\.com/[a-z]{3}-[a-z]{4}-[a-z]{3}", meet)
    assert re.fullmatch(r"https://zoom\.us/j/\d{10}", zoom)
    assert re.fullmatch(r"/skillswap/meeting/[a-z0-9]{10}", in_app)


def test_meeting_link_rejects_unknown_platform():
    with pytest.raises(ValidationError):
        session_service.generate_meeting_link("carrier_pigeon")


# ======================
# ROLES
# ======================

def test_offer_owner_teaches(offer_post, alice, bob):
    assert session_service.assign_roles(offer_post, bob.id) == (alice.id, bob.id)


def test_request_owner_learns(request_post, alice, bob):
    assert session_service.assign_roles(request_post, bob.id) == (bob.id, alice.id)


# ======================
# SCHEDULE
# ======================

def test_schedule_without_connection_creates_pending_video_connection(db, offer_post, alice, bob):
    session = _schedule(db, offer_post, bob, notes="  Bring questions  ")

    connection = db.get(Connection, session.connection_id)
    assert connection.status == "pending"
    assert connection.connection_type == "video_meeting"
    assert connection.requester_id == bob.id
    assert connection.post_owner_id == alice.id

    assert session.status == "scheduled"
    assert session.teacher_id == alice.id
    assert session.learner_id == bob.id
    assert session.scheduled_time == "14:30"
    assert session.notes == "Bring questions"
    assert session.meeting_link.startswith("https://meet.google.com/")


def test_schedule_reuses_open_connection(db, offer_post, alice, bob):
    existing = connection_service.create_connection(
        db, post_id=offer_post.id, requester_id=bob.id, owner_id=alice.id
    )
    connection_service.respond(db, existing.id, "accepted", alice.id)

    session = _schedule(db, offer_post, bob, platform="zoom")

    assert session.connection_id == existing.id
    assert db.query(Connection).count() == 1


def test_schedule_on_request_post_flips_roles(db, request_post, alice, bob):
    session = _schedule(db, request_post, bob, platform="in_app")

    assert session.teacher_id == bob.id
    assert session.learner_id == alice.id
    assert session.meeting_link.startswith("/skillswap/meeting/")


def test_schedule_with_explicit_connection(db, accepted_connection, offer_post, bob):
    session = _schedule(db, offer_post, bob, connection_id=accepted_connection.id)
    assert session.connection_id == accepted_connection.id


def test_schedule_on_declined_connection_fails(db, offer_post, alice, bob):
    declined = connection_service.create_connection(
        db, post_id=offer_post.id, requester_id=bob.id, owner_id=alice.id
    )
    connection_service.respond(db, declined.id, "declined", alice.id)

    with pytest.raises(InvalidStateError):
        _schedule(db, offer_post, bob, connection_id=declined.id)


def test_owner_cannot_schedule_on_own_post(db, offer_post, alice):
    with pytest.raises(ValidationError):
        _schedule(db, offer_post, alice)
    assert db.query(Connection).count() == 0


@pytest.mark.parametrize("bad_time", ["2pm", "25:00", ""])
def test_schedule_rejects_bad_time(db, offer_post, bob, bad_time):
    with pytest.raises(ValidationError):
        _schedule(db, offer_post, bob, scheduled_time=bad_time)


def test_schedule_rejects_unlisted_duration(db, offer_post, bob):
    with pytest.raises(ValidationError):
        _schedule(db, offer_post, bob, duration=50)
    assert db.query(SkillSession).count() == 0


def test_schedule_on_missing_post(db, bob):
    with pytest.raises(NotFoundError):
        session_service.schedule(
            db,
            post_id=12345,
            requester_id=bob.id,
            scheduled_date=NEXT_WEEK,
            scheduled_time="10:00",
            duration=30,
            platform="zoom",
        )


# ======================
# STATUS TRANSITIONS
# ======================

def test_either_participant_can_complete(db, offer_post, alice, bob):
    session = _schedule(db, offer_post, bob)

    updated = session_service.update_status(db, session.id, "completed", alice.id)

    assert updated.status == "completed"
    # Completing a session leaves the connection alone.
    assert db.get(Connection, session.connection_id).status == "pending"


def test_cancel_then_complete_is_rejected(db, offer_post, bob):
    session = _schedule(db, offer_post, bob)
    session_service.update_status(db, session.id, "cancelled", bob.id)

    with pytest.raises(InvalidStateError):
        session_service.update_status(db, session.id, "completed", bob.id)


def test_repeat_completion_is_rejected(db, offer_post, bob):
    session = _schedule(db, offer_post, bob)
    session_service.update_status(db, session.id, "completed", bob.id)

    with pytest.raises(InvalidStateError):
        session_service.update_status(db, session.id, "completed", bob.id)


def test_in_progress_is_never_a_target(db, offer_post, bob):
    session = _schedule(db, offer_post, bob)

    with pytest.raises(InvalidStateError):
        session_service.update_status(db, session.id, "in_progress", bob.id)


def test_outsider_cannot_update(db, offer_post, bob, carol):
    session = _schedule(db, offer_post, bob)

    with pytest.raises(AuthorizationError):
        session_service.update_status(db, session.id, "cancelled", carol.id)

    db.expire_all()
    assert db.get(SkillSession, session.id).status == "scheduled"


# ======================
# LISTING
# ======================

def test_listing_splits_upcoming_and_past(db, offer_post, alice, bob):
    upcoming = _schedule(db, offer_post, bob)
    done = _schedule(db, offer_post, bob, scheduled_time="09:00")
    session_service.update_status(db, done.id, "completed", alice.id)

    listing = session_service.list_for_user(db, bob.id)

    assert [s.id for s in listing.upcoming] == [upcoming.id]
    assert [s.id for s in listing.past] == [done.id]
    assert listing.upcoming[0].is_teacher is False
    assert listing.upcoming[0].counterpart.full_name == "Alice Owner"
    assert listing.upcoming[0].post_title == "Python Basics"
    assert listing.upcoming[0].connection_status == "pending"

    teacher_listing = session_service.list_for_user(db, alice.id)
    assert teacher_listing.upcoming[0].is_teacher is True


def test_in_app_session_on_fixed_date(db, offer_post, alice, bob):
    session = _schedule(
        db, offer_post, bob,
        scheduled_date=date(2025, 3, 1),
        scheduled_time="10:00",
        duration=60,
        platform="in_app",
    )

    assert session.status == "scheduled"
    assert session.scheduled_date == date(2025, 3, 1)
    assert re.fullmatch(r"/skillswap/meeting/[a-z0-9]{10}", session.meeting_link)
    assert (session.teacher_id, session.learner_id) == (alice.id, bob.id)


def test_transition_committed_after_read_is_not_overwritten(db, session_factory, offer_post, alice, bob, monkeypatch):
    session = _schedule(db, offer_post, bob)
    original = session_crud.get_session_for_update

    def read_then_cancel_elsewhere(current, session_id):
        row = original(current, session_id)
        with session_factory() as other:
            other.get(SkillSession, session_id).status = "cancelled"
            other.commit()
        return row

    monkeypatch.setattr(session_crud, "get_session_for_update", read_then_cancel_elsewhere)

    with pytest.raises(InvalidStateError) as exc_info:
        session_service.update_status(db, session.id, "completed", alice.id)

    assert exc_info.value.details["current_status"] == "cancelled"
    db.expire_all()
    assert db.get(SkillSession, session.id).status == "cancelled"
