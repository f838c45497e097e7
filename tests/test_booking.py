"""Booking engine: all-or-nothing booking, races, release and cancellation."""

from datetime import datetime, timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from conftest import make_session
from peertutor.database import Base
from peertutor.models.session import TutoringSession
from peertutor.models.user import User
from peertutor.services import availability_service, booking_service, session_service
from peertutor.services.results import ErrorCode


def _book(db, tutor_id, student_id, day, start, end):
    return booking_service.book_session(
        db,
        tutor_id=tutor_id,
        student_id=student_id,
        date=day,
        start_time=start,
        end_time=end,
        subject="mathematics",
        hourly_rate=25.0,
        tutor_name="Tina Tutor",
        student_name="Sam Student",
    )


def _slots(db, tutor_id, day):
    return {s.start_time: s for s in availability_service.load_slots(availability_service.get_day(db, tutor_id, day))}


# ==========================================
# BOOK
# ==========================================

def test_book_marks_every_hour_and_prices_session(db_session, tutor, student, future_day):
    availability_service.add_slots(db_session, tutor.id, future_day, "10:00", "12:00")

    result = _book(db_session, tutor.id, student.id, future_day, "10:00", "12:00")

    assert result["success"] is True
    assert result["hours"] == 2
    assert result["total_amount"] == 50.0
    assert result["payment_id"].startswith("sim_")

    session = db_session.get(TutoringSession, result["session_id"])
    assert session.status == "pending"
    assert session.payment_status == "paid"
    assert session.student_name == "Sam Student"

    slots = _slots(db_session, tutor.id, future_day)
    assert slots["10:00"].is_booked and slots["10:00"].session_id == session.id
    assert slots["11:00"].is_booked and slots["11:00"].session_id == session.id


def test_book_fails_whole_request_when_one_hour_is_missing(db_session, tutor, student, future_day):
    availability_service.add_slots(db_session, tutor.id, future_day, "10:00", "11:00")

    result = _book(db_session, tutor.id, student.id, future_day, "10:00", "12:00")

    assert result["success"] is False
    assert result["code"] == ErrorCode.CONFLICT
    assert result["unavailable"] == ["11:00"]
    assert not _slots(db_session, tutor.id, future_day)["10:00"].is_booked
    assert db_session.query(TutoringSession).count() == 0


def test_second_booking_of_same_hour_is_rejected(db_session, tutor, student, other_student, future_day):
    availability_service.add_slots(db_session, tutor.id, future_day, "10:00", "12:00")
    first = _book(db_session, tutor.id, student.id, future_day, "10:00", "11:00")

    second = _book(db_session, tutor.id, other_student.id, future_day, "10:00", "12:00")

    assert first["success"] is True
    assert second["success"] is False
    assert second["error"] == booking_service.SLOTS_UNAVAILABLE
    assert not _slots(db_session, tutor.id, future_day)["11:00"].is_booked


def test_book_validation(db_session, tutor, student, future_day):
    availability_service.add_slots(db_session, tutor.id, future_day, "10:00")

    assert _book(db_session, tutor.id, tutor.id, future_day, "10:00", "11:00")["success"] is False
    assert _book(db_session, tutor.id, student.id, future_day, "10:30", "11:00")["success"] is False
    assert _book(db_session, tutor.id, student.id, future_day, "11:00", "10:00")["success"] is False
    assert _book(db_session, tutor.id, student.id, "2001-01-01", "10:00", "11:00")["success"] is False
    no_day = _book(db_session, tutor.id, student.id, "2999-01-01", "10:00", "11:00")
    assert no_day["code"] == ErrorCode.NOT_FOUND


def test_losing_a_concurrent_booking_race_leaves_no_trace(tmp_path, future_day):
    """Two sessions read the same day; the slower writer hits the version check."""
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False)

    setup = Session()
    setup.add_all([
        User(id=1, email="t@test.edu", password_hash="x", full_name="T", role="tutor"),
        User(id=2, email="a@test.edu", password_hash="x", full_name="A"),
        User(id=3, email="b@test.edu", password_hash="x", full_name="B"),
    ])
    setup.commit()
    availability_service.add_slots(setup, 1, future_day, "10:00", "11:00")
    setup.close()

    db_a, db_b = Session(), Session()
    try:
        # B caches the day while it is still free
        assert availability_service.get_day(db_b, 1, future_day) is not None

        won = _book(db_a, 1, 2, future_day, "10:00", "11:00")
        lost = _book(db_b, 1, 3, future_day, "10:00", "11:00")

        assert won["success"] is True
        assert lost["success"] is False
        assert lost["code"] == ErrorCode.CONFLICT

        check = Session()
        assert check.query(TutoringSession).count() == 1
        slot = _slots(check, 1, future_day)["10:00"]
        assert slot.session_id == won["session_id"]
        check.close()
    finally:
        db_a.close()
        db_b.close()
        engine.dispose()


# ==========================================
# RELEASE
# ==========================================

def test_release_frees_only_that_sessions_slots(db_session, tutor, student, other_student, future_day):
    availability_service.add_slots(db_session, tutor.id, future_day, "10:00", "12:00")
    first = _book(db_session, tutor.id, student.id, future_day, "10:00", "11:00")
    _book(db_session, tutor.id, other_student.id, future_day, "11:00", "12:00")

    session = db_session.get(TutoringSession, first["session_id"])
    result = booking_service.release_session_slots(db_session, session)

    assert result == {"success": True, "released": 1}
    slots = _slots(db_session, tutor.id, future_day)
    assert not slots["10:00"].is_booked and slots["10:00"].session_id is None
    assert slots["11:00"].is_booked


def test_release_is_idempotent(db_session, tutor, student, future_day):
    availability_service.add_slots(db_session, tutor.id, future_day, "10:00")
    booked = _book(db_session, tutor.id, student.id, future_day, "10:00", "11:00")
    session = db_session.get(TutoringSession, booked["session_id"])

    booking_service.release_session_slots(db_session, session)
    again = booking_service.release_session_slots(db_session, session)

    assert again == {"success": True, "released": 0}


def test_release_after_reschedule_finds_original_slots(db_session, tutor, student, future_day):
    availability_service.add_slots(db_session, tutor.id, future_day, "10:00")
    booked = _book(db_session, tutor.id, student.id, future_day, "10:00", "11:00")
    session_service.accept_session(db_session, booked["session_id"], tutor.id)
    moved_to = (datetime.fromisoformat(future_day) + timedelta(days=2)).date().isoformat()
    session_service.reschedule_session(
        db_session, booked["session_id"], date=moved_to, start_time="15:00", end_time="16:00"
    )

    session = db_session.get(TutoringSession, booked["session_id"])
    result = booking_service.release_session_slots(db_session, session)

    assert result["released"] == 1
    assert not _slots(db_session, tutor.id, future_day)["10:00"].is_booked


# ==========================================
# CANCEL (student)
# ==========================================

def _session_at_14(db, day):
    return make_session(db, status="confirmed", date=day, start_time="14:00", end_time="15:00")


def test_cancel_exactly_at_cutoff_is_allowed(db_session, tutor, student, future_day):
    session = _session_at_14(db_session, future_day)
    now = datetime.fromisoformat(f"{future_day}T09:00:00")

    result = booking_service.cancel_session(db_session, session.id, student.id, now=now)

    assert result["success"] is True
    assert result["refunded"] is True
    refreshed = db_session.get(TutoringSession, session.id)
    assert refreshed.status == "cancelled"
    assert refreshed.payment_status == "refunded"


def test_cancel_inside_cutoff_is_rejected(db_session, tutor, student, future_day):
    session = _session_at_14(db_session, future_day)

    late = booking_service.cancel_session(
        db_session, session.id, student.id, now=datetime.fromisoformat(f"{future_day}T09:01:00")
    )
    early = booking_service.cancel_session(
        db_session, session.id, student.id, now=datetime.fromisoformat(f"{future_day}T08:59:00")
    )

    assert late["success"] is False
    assert late["code"] == ErrorCode.CONFLICT
    assert late["cutoff"] == f"{future_day}T09:00:00"
    assert early["success"] is True


def test_cancel_frees_booked_slots(db_session, tutor, student, future_day):
    availability_service.add_slots(db_session, tutor.id, future_day, "10:00", "12:00")
    booked = _book(db_session, tutor.id, student.id, future_day, "10:00", "12:00")
    now = datetime.fromisoformat(f"{future_day}T00:00:00")

    result = booking_service.cancel_session(db_session, booked["session_id"], student.id, now=now)

    assert result["released"] == 2
    assert not any(s.is_booked for s in _slots(db_session, tutor.id, future_day).values())


def test_cancelled_slot_can_be_booked_by_another_student(db_session, tutor, student, other_student, future_day):
    availability_service.add_slots(db_session, tutor.id, future_day, "10:00", "11:00")
    first = _book(db_session, tutor.id, student.id, future_day, "10:00", "11:00")
    now = datetime.fromisoformat(f"{future_day}T00:00:00")
    booking_service.cancel_session(db_session, first["session_id"], student.id, now=now)

    second = _book(db_session, tutor.id, other_student.id, future_day, "10:00", "11:00")

    assert second["success"] is True
    assert second["session_id"] != first["session_id"]
    slot = _slots(db_session, tutor.id, future_day)["10:00"]
    assert slot.is_booked is True
    assert slot.session_id == second["session_id"]
    assert _book(db_session, tutor.id, student.id, future_day, "10:00", "11:00")["code"] == ErrorCode.CONFLICT


def test_cancel_requires_the_booking_student(db_session, tutor, student, other_student, future_day):
    session = _session_at_14(db_session, future_day)
    now = datetime.fromisoformat(f"{future_day}T00:00:00")

    assert booking_service.cancel_session(db_session, session.id, other_student.id, now=now)["code"] == ErrorCode.FORBIDDEN
    assert booking_service.cancel_session(db_session, 999, student.id, now=now)["code"] == ErrorCode.NOT_FOUND


def test_cancel_twice_is_rejected(db_session, tutor, student, future_day):
    session = _session_at_14(db_session, future_day)
    now = datetime.fromisoformat(f"{future_day}T00:00:00")
    booking_service.cancel_session(db_session, session.id, student.id, now=now)

    again = booking_service.cancel_session(db_session, session.id, student.id, now=now)

    assert again["error"] == "Session is already cancelled."


def test_cancel_reports_partial_when_release_fails(db_session, tutor, student, future_day, monkeypatch):
    session = _session_at_14(db_session, future_day)
    monkeypatch.setattr(
        booking_service,
        "release_session_slots",
        lambda db, s: {"success": False, "error": "boom", "code": ErrorCode.STORE},
    )

    result = booking_service.cancel_session(
        db_session, session.id, student.id, now=datetime.fromisoformat(f"{future_day}T00:00:00")
    )

    assert result["partial"] is True
    assert result["code"] == ErrorCode.PARTIAL
    assert db_session.get(TutoringSession, session.id).status == "cancelled"
