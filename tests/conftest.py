"""Pytest bootstrap: environment, project imports and shared fixtures."""

import os
from pathlib import Path
import sys

# Settings are read at import time; they must exist before the package loads.
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Ensure project root is on sys.path so `import skillswap_core` works uninstalled
PROJECT_ROOT = Path(__file__).resolve().parents[1]
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from skillswap_core import models  # noqa: F401
from skillswap_core.database import Base
from skillswap_core.models.connection import Connection, ConnectionStatus
from skillswap_core.models.post import PostType, SkillPost
from skillswap_core.models.user import User
from skillswap_core.realtime import EventBus, install_change_capture


# ======================
# DATABASE
# ======================

@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so bus handlers and the test body can use separate connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'skillswap.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest_asyncio.fixture
async def bus(session_factory):
    """Event bus fed by committed changes from ``session_factory`` sessions."""
    bus = EventBus()
    uninstall = install_change_capture(session_factory, bus)
    yield bus
    uninstall()
    await bus.close()


# ======================
# PEOPLE & POSTS
# ======================

def _create_user(db, full_name: str, email: str) -> User:
    user = User(full_name=full_name, email=email)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def alice(db):
    """Post owner."""
    return _create_user(db, "Alice Owner", "alice@test.edu")


@pytest.fixture
def bob(db):
    """Requester."""
    return _create_user(db, "Bob Requester", "bob@test.edu")


@pytest.fixture
def carol(db):
    """Not part of any connection."""
    return _create_user(db, "Carol Outsider", "carol@test.edu")


def _create_post(db, owner: User, post_type: PostType, title: str) -> SkillPost:
    post = SkillPost(
        user_id=owner.id,
        post_type=post_type.value,
        skill_title=title,
        category="programming",
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


@pytest.fixture
def offer_post(db, alice):
    """Alice offers to teach."""
    return _create_post(db, alice, PostType.OFFER, "Python Basics")


@pytest.fixture
def request_post(db, alice):
    """Alice wants to learn."""
    return _create_post(db, alice, PostType.REQUEST, "Watercolour Painting")


@pytest.fixture
def accepted_connection(db, offer_post, alice, bob) -> Connection:
    connection = Connection(
        post_id=offer_post.id,
        requester_id=bob.id,
        post_owner_id=alice.id,
        connection_type="chat",
        status=ConnectionStatus.ACCEPTED.value,
    )
    db.add(connection)
    db.commit()
    db.refresh(connection)
    return connection
