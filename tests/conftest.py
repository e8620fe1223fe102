"""
Test configuration and fixtures.

Every test gets a fresh in-memory SQLite database and a small campus: two
colleges, one community, and one holder of each office.
"""

import os
from datetime import timedelta
from types import SimpleNamespace

import pytest

# Must be set BEFORE any imports of campus_api.database
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_SCHEDULER"] = "false"

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from campus_api.database import Base  # noqa: E402
from campus_api import models  # noqa: E402, F401
from campus_api.models import College, Community, Event, User  # noqa: E402
from campus_api.models.enums import EventStatus, UserRole  # noqa: E402
from campus_api.utils.date_helpers import DateHelpers  # noqa: E402


def build_engine(url: str = "sqlite://"):
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url == "sqlite://":
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def engine():
    engine = build_engine()
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


def seed_campus(db):
    """Two colleges, one community in the first, one holder of every office"""
    engineering = College(name="College of Engineering", code="ENG")
    science = College(name="College of Science", code="SCI")
    db.add_all([engineering, science])
    db.flush()

    def user(name, role, college=None):
        account = User(
            supabase_id=f"sb-{name}",
            email=f"{name}@campus.edu",
            name=name.replace("_", " ").title(),
            role=role,
            college_id=college.id if college else None,
            is_active=True,
        )
        db.add(account)
        return account

    campus = SimpleNamespace(
        engineering=engineering,
        science=science,
        club_leader=user("club_leader", UserRole.CLUB_LEADER, engineering),
        faculty_leader=user("faculty_leader", UserRole.FACULTY_LEADER, engineering),
        dean=user("dean", UserRole.DEAN_OF_FACULTY, engineering),
        deanship=user("deanship", UserRole.DEANSHIP_OF_STUDENT_AFFAIRS),
        other_faculty_leader=user("sci_faculty_leader", UserRole.FACULTY_LEADER, science),
        other_dean=user("sci_dean", UserRole.DEAN_OF_FACULTY, science),
        student=user("student", UserRole.STUDENT, engineering),
        second_student=user("second_student", UserRole.STUDENT, engineering),
        admin=user("admin", UserRole.ADMIN),
    )
    db.flush()

    campus.community = Community(
        name="Robotics Club",
        college_id=engineering.id,
        club_leader_id=campus.club_leader.id,
    )
    db.add(campus.community)
    db.commit()
    return campus


@pytest.fixture
def campus(db):
    return seed_campus(db)


@pytest.fixture
def make_event(db, campus):
    """Insert an event directly in the given status"""

    def _make_event(status=EventStatus.PENDING_FACULTY_APPROVAL, **overrides):
        now = DateHelpers.utc_now()
        values = dict(
            title="Robot Wars",
            description="Annual robot battle",
            location="Hall B",
            start_date=now + timedelta(days=14),
            community_id=campus.community.id,
            college_id=campus.engineering.id,
            created_by=campus.club_leader.id,
            status=status,
            version=1,
            last_transition_at=now - timedelta(minutes=1),
        )
        values.update(overrides)
        event = Event(**values)
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    return _make_event
