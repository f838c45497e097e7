"""Pytest bootstrap for project imports plus shared database fixtures."""

from datetime import date, timedelta
from pathlib import Path
import sys

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure project root is on sys.path so `import peertutor` works
PROJECT_ROOT = Path(__file__).resolve().parents[1]
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

from peertutor.database import Base  # noqa: E402
from peertutor.models.session import TutoringSession  # noqa: E402
from peertutor.models.user import User  # noqa: E402


# ==========================================
# DATABASE
# ==========================================

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


# ==========================================
# USERS
# ==========================================

def make_user(db, user_id, role="student", **fields):
    fields.setdefault("email", f"user{user_id}@test.edu")
    fields.setdefault("full_name", f"User {user_id}")
    fields.setdefault("is_active", True)
    fields.setdefault("rating", 0.0)
    fields.setdefault("total_reviews", 0)
    user = User(id=user_id, password_hash="hash", role=role, **fields)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def tutor(db_session):
    return make_user(
        db_session,
        1,
        role="tutor",
        full_name="Tina Tutor",
        email="tutor@test.edu",
        hourly_rate=25.0,
        subjects=["mathematics"],
        phone_number="0771234567",
        is_verified=True,
    )


@pytest.fixture
def student(db_session):
    return make_user(db_session, 2, full_name="Sam Student", email="student@test.edu")


@pytest.fixture
def other_student(db_session):
    return make_user(db_session, 3, full_name="Olive Other", email="other@test.edu")


# ==========================================
# DATES / SESSIONS
# ==========================================

@pytest.fixture
def future_day():
    return (date.today() + timedelta(days=7)).isoformat()


def make_session(db, tutor_id=1, student_id=2, status="confirmed", **fields):
    """Insert a session row directly, bypassing the booking engine."""
    fields.setdefault("subject", "mathematics")
    fields.setdefault("date", (date.today() + timedelta(days=7)).isoformat())
    fields.setdefault("start_time", "10:00")
    fields.setdefault("end_time", "11:00")
    fields.setdefault("hours", 1)
    fields.setdefault("hourly_rate", 25.0)
    fields.setdefault("total_amount", fields["hours"] * fields["hourly_rate"])
    fields.setdefault("payment_status", "paid")
    session = TutoringSession(
        tutor_id=tutor_id,
        student_id=student_id,
        status=status,
        **fields,
    )
    db.add(session)
    db.commit()
    return session
