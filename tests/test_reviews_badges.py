# tests/test_reviews_badges.py
"""
Reviews & Badges
End-to-end testing of review submission and badge evaluation
"""

from datetime import date

import pytest

from skillswap_core.crud import badge as badge_crud
from skillswap_core.crud import session as session_crud
from skillswap_core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from skillswap_core.models.badge import UserBadge
from skillswap_core.models.review import Review
from skillswap_core.models.session import SessionStatus
from skillswap_core.schemas.badge import (
    AnyOf,
    FiveStarReviews,
    SessionsLearned,
    SessionsTaught,
    UserStats,
    dump_criteria,
    parse_criteria,
)
from skillswap_core.services import badge_service, review_service


# ======================
# TEST DATA SETUP
# ======================

@pytest.fixture
def catalog(db):
    badge_service.seed_default_badges(db)
    return {b.name: b for b in badge_service.list_badges(db)}


def _session(db, connection, teacher, learner, status=SessionStatus.COMPLETED):
    session = session_crud.create_session(
        db,
        connection_id=connection.id,
        teacher_id=teacher.id,
        learner_id=learner.id,
        scheduled_date=date(2025, 3, 1),
        scheduled_time="10:00",
        duration=60,
        meeting_platform="in_app",
        meeting_link=None,
        notes=None,
    )
    session.status = status.value
    db.commit()
    db.refresh(session)
    return session


@pytest.fixture
def completed(db, accepted_connection, alice, bob):
    """Alice taught Bob."""
    return _session(db, accepted_connection, alice, bob)


def _held(db, user):
    return {ub.badge.name for ub in badge_crud.list_user_badges(db, user.id)}


# ======================
# SUBMISSION RULES
# ======================

def test_learner_reviews_teacher(db, completed, alice, bob):
    result = review_service.submit_review(db, completed.id, bob.id, 4, "  Clear and patient  ")

    review = result["review"]
    assert review.reviewer_id == bob.id
    assert review.reviewee_id == alice.id
    assert review.feedback == "Clear and patient"
    assert result["message"] == "Review submitted successfully"


def test_teacher_can_review_learner(db, completed, alice, bob):
    result = review_service.submit_review(db, completed.id, alice.id, 5)
    assert result["review"].reviewee_id == bob.id


def test_both_participants_may_review_the_same_session(db, completed, alice, bob):
    review_service.submit_review(db, completed.id, bob.id, 5)
    review_service.submit_review(db, completed.id, alice.id, 4)

    assert db.query(Review).filter(Review.session_id == completed.id).count() == 2


def test_duplicate_review_conflicts(db, completed, bob):
    review_service.submit_review(db, completed.id, bob.id, 5)

    with pytest.raises(ConflictError) as exc_info:
        review_service.submit_review(db, completed.id, bob.id, 3)

    assert exc_info.value.code == "already_reviewed"
    assert review_service.has_reviewed(db, completed.id, bob.id)
    assert db.query(Review).filter(
        Review.session_id == completed.id, Review.reviewer_id == bob.id
    ).count() == 1


def test_scheduled_session_cannot_be_reviewed(db, accepted_connection, alice, bob):
    session = _session(db, accepted_connection, alice, bob, status=SessionStatus.SCHEDULED)

    with pytest.raises(InvalidStateError):
        review_service.submit_review(db, session.id, bob.id, 5)


def test_outsider_cannot_review(db, completed, carol):
    with pytest.raises(AuthorizationError):
        review_service.submit_review(db, completed.id, carol.id, 1)


@pytest.mark.parametrize("rating", [0, 6])
def test_rating_must_be_in_range(db, completed, bob, rating):
    with pytest.raises(ValidationError):
        review_service.submit_review(db, completed.id, bob.id, rating)


def test_feedback_length_is_limited(db, completed, bob):
    with pytest.raises(ValidationError):
        review_service.submit_review(db, completed.id, bob.id, 5, "x" * 1001)


def test_review_of_missing_session(db, bob):
    with pytest.raises(NotFoundError):
        review_service.submit_review(db, 31337, bob.id, 5)


def test_reviews_received_newest_first(db, accepted_connection, alice, bob):
    first = _session(db, accepted_connection, alice, bob)
    second = _session(db, accepted_connection, alice, bob)
    review_service.submit_review(db, first.id, bob.id, 4)
    review_service.submit_review(db, second.id, bob.id, 5)

    reviews = review_service.list_reviews_for_user(db, alice.id)

    assert [r.session_id for r in reviews] == [second.id, first.id]
    assert review_service.list_reviews_for_user(db, bob.id) == []


# ======================
# BADGE CRITERIA
# ======================

def test_parse_tagged_criteria():
    criteria = parse_criteria({"kind": "sessions_taught", "minimum": 5, "min_avg_rating": 4.5})
    assert criteria == SessionsTaught(minimum=5, min_avg_rating=4.5)


def test_parse_legacy_criteria():
    assert parse_criteria({"sessions_taught": 5, "min_rating": 4.5}) == SessionsTaught(minimum=5, min_avg_rating=4.5)
    assert parse_criteria({"sessions_learned": 3}) == SessionsLearned(minimum=3)
    assert parse_criteria({"five_star_reviews": 1}) == FiveStarReviews(minimum=1)
    assert parse_criteria({}) is None
    assert parse_criteria(None) is None


def test_legacy_map_with_several_thresholds_needs_any_one():
    criteria = parse_criteria({"sessions_taught": 10, "five_star_reviews": 1})

    assert criteria == AnyOf(options=[SessionsTaught(minimum=10), FiveStarReviews(minimum=1)])

    only_five_star = UserStats(user_id=1, sessions_taught=2, five_star_reviews=1)
    neither = UserStats(user_id=1, sessions_taught=2)
    assert badge_service.is_satisfied(criteria, only_five_star)
    assert not badge_service.is_satisfied(criteria, neither)


def test_any_of_round_trips_through_stored_json():
    criteria = AnyOf(options=[SessionsLearned(minimum=3), FiveStarReviews(minimum=2)])
    assert parse_criteria(dump_criteria(criteria)) == criteria


def test_parse_rejects_unknown_kind():
    with pytest.raises(ValueError):
        parse_criteria({"kind": "sessions_slept", "minimum": 1})


def test_criteria_matcher():
    stats = UserStats(user_id=1, sessions_taught=5, sessions_learned=2, five_star_reviews=1, average_rating=4.4)

    assert badge_service.is_satisfied(SessionsTaught(minimum=5), stats)
    assert not badge_service.is_satisfied(SessionsTaught(minimum=5, min_avg_rating=4.5), stats)
    assert not badge_service.is_satisfied(SessionsLearned(minimum=3), stats)
    assert badge_service.is_satisfied(FiveStarReviews(minimum=1), stats)


# ======================
# BADGE AWARDING
# ======================

def test_seeding_is_idempotent(db, catalog):
    assert badge_service.seed_default_badges(db) == 0
    assert len(badge_service.list_badges(db)) == len(badge_service.DEFAULT_BADGES)


def test_first_five_star_review_awards_badge_once(db, catalog, accepted_connection, alice, bob):
    """A second 5-star review must not duplicate an already held badge."""
    first = _session(db, accepted_connection, alice, bob)
    second = _session(db, accepted_connection, alice, bob)

    result = review_service.submit_review(db, first.id, bob.id, 5)
    stats = badge_service.compute_user_stats(db, alice.id)

    assert "First Five-Star" in result["awarded_badges"]
    assert "First Lesson" in result["awarded_badges"]
    assert stats.five_star_reviews == 1

    result = review_service.submit_review(db, second.id, bob.id, 5)

    assert result["awarded_badges"] == []
    assert db.query(UserBadge).filter(
        UserBadge.user_id == alice.id,
        UserBadge.badge_id == catalog["First Five-Star"].id,
    ).count() == 1
    assert badge_service.compute_user_stats(db, alice.id).five_star_reviews == 2


def test_star_mentor_needs_volume_and_rating(db, catalog, accepted_connection, alice, bob):
    for rating in [5, 5, 4, 5]:
        session = _session(db, accepted_connection, alice, bob)
        review_service.submit_review(db, session.id, bob.id, rating)
    assert "Star Mentor" not in _held(db, alice)

    fifth = _session(db, accepted_connection, alice, bob)
    result = review_service.submit_review(db, fifth.id, bob.id, 5)

    assert "Star Mentor" in result["awarded_badges"]
    assert {"First Five-Star", "First Lesson", "Crowd Favourite", "Star Mentor"} <= _held(db, alice)


def test_learner_badges_follow_learner_stats(db, catalog, accepted_connection, alice, bob):
    sessions = [_session(db, accepted_connection, alice, bob) for _ in range(3)]

    result = review_service.submit_review(db, sessions[0].id, alice.id, 3)

    assert result["awarded_badges"] == ["Eager Learner"]


def test_repeat_evaluation_awards_nothing(db, catalog, completed, alice, bob):
    review_service.submit_review(db, completed.id, bob.id, 5)
    held = _held(db, alice)

    assert badge_service.evaluate_badges(db, alice.id) == []
    assert _held(db, alice) == held


def test_award_badge_is_a_noop_when_held(db, catalog, alice):
    badge = catalog["First Lesson"]

    assert badge_service.award_badge(db, alice.id, badge.id) is not None
    assert badge_service.award_badge(db, alice.id, badge.id) is None
    assert db.query(UserBadge).filter(UserBadge.user_id == alice.id).count() == 1


def test_award_badge_survives_losing_the_unique_key(db, catalog, alice, monkeypatch):
    badge = catalog["First Lesson"]
    # Both callers pass the "not held yet" check before either has inserted.
    monkeypatch.setattr(badge_crud, "count_user_badges", lambda *args, **kwargs: 0)

    assert badge_service.award_badge(db, alice.id, badge.id) is not None
    assert badge_service.award_badge(db, alice.id, badge.id) is None
    assert db.query(UserBadge).filter(
        UserBadge.user_id == alice.id,
        UserBadge.badge_id == badge.id,
    ).count() == 1


def test_badge_failure_does_not_block_review(db, catalog, completed, bob, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("stats unavailable")

    monkeypatch.setattr(badge_service, "compute_user_stats", broken)

    result = review_service.submit_review(db, completed.id, bob.id, 5)

    assert result["awarded_badges"] == []
    assert review_service.has_reviewed(db, completed.id, bob.id)


def test_unreadable_criteria_is_skipped(db, alice, completed, bob):
    badge_crud.create_badge(db, name="Broken", criteria={"kind": "nonsense"})
    badge_crud.create_badge(db, name="Legacy Teacher", criteria={"sessions_taught": 1})
    db.commit()

    result = review_service.submit_review(db, completed.id, bob.id, 4)

    assert result["awarded_badges"] == ["Legacy Teacher"]


def test_badge_overview_marks_earned(db, catalog, completed, alice, bob):
    review_service.submit_review(db, completed.id, bob.id, 5)

    overview = badge_service.badge_overview(db, alice.id)

    earned = {b.name for b in overview.badges if b.earned}
    assert earned == {"First Five-Star", "First Lesson"}
    assert all(b.earned_at is not None for b in overview.badges if b.earned)
    assert overview.stats.sessions_taught == 1
    assert overview.stats.average_rating == 5.0
