# peertutor/services/session_service.py
"""
Session Lifecycle Manager

Status machine:
    pending     -> confirmed | cancelled
    confirmed   -> completed | cancelled | rescheduled
    rescheduled -> confirmed | cancelled
    completed, cancelled are terminal

``update_session_status`` performs a transition plus its side effects and does
not check who is asking. The participant-specific entry points further down
(``accept_session``, ``decline_session``, ``accept_reschedule``,
``decline_reschedule``) are where authorization happens.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from peertutor.config import settings
from peertutor.models.session import SESSION_STATUSES, TutoringSession
from peertutor.services import chat_service, notification_service, payment_service
from peertutor.services.booking_service import release_session_slots
from peertutor.services.results import ErrorCode, fail, ok, partial
from peertutor.utils import timeslots

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled", "rescheduled"},
    "rescheduled": {"confirmed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, set())


def serialize_session(session: TutoringSession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "tutor_id": session.tutor_id,
        "student_id": session.student_id,
        "subject": session.subject,
        "date": session.date,
        "start_time": session.start_time,
        "end_time": session.end_time,
        "hours": session.hours,
        "hourly_rate": session.hourly_rate,
        "total_amount": session.total_amount,
        "status": session.status,
        "payment_status": session.payment_status,
        "payment_id": session.payment_id,
        "tutor_name": session.tutor_name,
        "student_name": session.student_name,
        "tutor_phone_number": session.tutor_phone_number,
        "created_at": session.created_at.isoformat() if session.created_at else None,
        "updated_at": session.updated_at.isoformat() if session.updated_at else None,
    }


def snapshot(session: TutoringSession) -> Dict[str, Any]:
    return serialize_session(session)


# ======================
# QUERIES
# ======================

def get_session(db: Session, session_id: int) -> Optional[TutoringSession]:
    return db.get(TutoringSession, session_id)


def get_user_sessions(
    db: Session,
    user_id: int,
    role: str,
    status: Optional[str] = None,
) -> Dict[str, Any]:
    """Sessions where the user is the tutor (role == "tutor") or the student."""
    if status is not None and status not in SESSION_STATUSES:
        return fail(f"Unknown session status: {status}")

    column = TutoringSession.tutor_id if role == "tutor" else TutoringSession.student_id
    try:
        query = db.query(TutoringSession).filter(column == user_id)
        if status:
            query = query.filter(TutoringSession.status == status)
        sessions: List[TutoringSession] = query.order_by(
            TutoringSession.date.desc(), TutoringSession.start_time.desc()
        ).all()
    except SQLAlchemyError:
        logger.exception("Error getting sessions for user %s", user_id)
        return fail("Failed to load sessions", ErrorCode.STORE)

    return ok(sessions=[serialize_session(s) for s in sessions])


# ======================
# TRANSITIONS
# ======================

def update_session_status(db: Session, session_id: int, new_status: str) -> Dict[str, Any]:
    """
    Move a session to ``new_status`` and run that transition's side effects:

    * cancelled: free the session's slots and refund a paid session
    * confirmed: create the session chat (no-op if it exists)
    * completed: release the simulated payout
    * always: notify the affected participant(s)
    """
    if new_status not in SESSION_STATUSES:
        return fail(f"Unknown session status: {new_status}")
    if new_status == "rescheduled":
        return fail("Use reschedule to move a session to a new time")

    try:
        session = db.get(TutoringSession, session_id)
        if not session:
            return fail("Session not found.", ErrorCode.NOT_FOUND)

        previous = session.status
        if not can_transition(previous, new_status):
            return fail(
                f"Cannot change a {previous} session to {new_status}.",
                ErrorCode.CONFLICT,
            )

        session.status = new_status
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating session %s to %s", session_id, new_status)
        return fail("Failed to update session status", ErrorCode.STORE)

    logger.info("Session %s: %s -> %s", session_id, previous, new_status)

    problems = []
    extra: Dict[str, Any] = {}

    if new_status == "cancelled":
        release = release_session_slots(db, session)
        if not release["success"]:
            problems.append("availability slots could not be released")
        if session.payment_status == "paid":
            refund = payment_service.process_refund(db, session.id)
            extra["refunded"] = refund["success"]
            if not refund["success"]:
                problems.append("refund could not be processed")
        action = "declined" if previous == "pending" else "cancelled"
    elif new_status == "confirmed":
        chat = chat_service.create_chat(db, session.id, snapshot(session))
        if chat["success"]:
            extra["chat_id"] = chat["chat_id"]
        else:
            problems.append("chat could not be created")
        action = "confirmed"
    elif new_status == "completed":
        payment_service.release_payout(session)
        action = "completed"
    else:
        action = new_status

    notification_service.create_session_notifications(db, session, action)

    if problems:
        return partial(
            f"Session {new_status} but " + " and ".join(problems) + ".",
            session_id=session.id,
            status=new_status,
            previous_status=previous,
            **extra,
        )
    return ok(session_id=session.id, status=new_status, previous_status=previous, **extra)


def reschedule_session(
    db: Session,
    session_id: int,
    *,
    date: Any,
    start_time: str,
    end_time: str,
    release_old_slot: Optional[bool] = None,
) -> Dict[str, Any]:
    """
    Move a confirmed session to a new date/time and mark it ``rescheduled``.

    An end time at or before the start time means the session runs past
    midnight. The originally booked slots stay booked unless
    ``release_old_slot`` (default: RELEASE_OLD_SLOT_ON_RESCHEDULE) is true;
    the new time is not reserved in the availability store.
    """
    if release_old_slot is None:
        release_old_slot = settings.RELEASE_OLD_SLOT_ON_RESCHEDULE

    date_str = timeslots.normalize_date(date)
    if date_str is None:
        return fail("Invalid date format")
    if not timeslots.is_valid_time(start_time or "") or not timeslots.is_valid_time(end_time or ""):
        return fail("Start and end times are required (HH:MM)")
    start_time = timeslots.normalize_time(start_time)
    end_time = timeslots.normalize_time(end_time)
    if timeslots.parse_hour(start_time) > 23:
        return fail("Start time must be before 24:00")
    hours = timeslots.session_hours(start_time, end_time, wrap_midnight=True)

    try:
        session = db.get(TutoringSession, session_id)
        if not session:
            return fail("Session not found.", ErrorCode.NOT_FOUND)
        if not can_transition(session.status, "rescheduled"):
            return fail(
                f"Only confirmed sessions can be rescheduled (session is {session.status}).",
                ErrorCode.CONFLICT,
            )

        old_time = (session.date, session.start_time, session.end_time)
        session.date = date_str
        session.start_time = start_time
        session.end_time = end_time
        session.hours = hours
        session.total_amount = hours * session.hourly_rate
        session.status = "rescheduled"
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error rescheduling session %s", session_id)
        return fail("Failed to reschedule session", ErrorCode.STORE)

    logger.info("Session %s rescheduled from %s to %s", session_id, old_time, (date_str, start_time, end_time))

    released = None
    if release_old_slot:
        release = release_session_slots(db, session)
        if not release["success"]:
            notification_service.create_session_notifications(db, session, "rescheduled")
            return partial(
                "Session rescheduled but the previous slots could not be released.",
                session_id=session.id,
                status="rescheduled",
            )
        released = release["released"]

    notification_service.create_session_notifications(db, session, "rescheduled")
    return ok(
        session_id=session.id,
        status="rescheduled",
        hours=session.hours,
        total_amount=session.total_amount,
        released=released,
    )


def complete_session_and_release_payment(
    db: Session, session_id: int, requesting_student_id: int
) -> Dict[str, Any]:
    """Student confirms the session took place; funds go to the tutor."""
    try:
        session = db.get(TutoringSession, session_id)
        if not session:
            return fail("Session not found.", ErrorCode.NOT_FOUND)
        if session.student_id != requesting_student_id:
            return fail("You can only complete sessions you booked.", ErrorCode.FORBIDDEN)
        if session.status in ("cancelled", "completed"):
            return fail(f"Session is already {session.status}.", ErrorCode.CONFLICT)
        if session.status != "confirmed":
            return fail(
                f"Session is {session.status}. Only confirmed sessions can be completed.",
                ErrorCode.CONFLICT,
            )

        session.status = "completed"
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error completing session %s", session_id)
        return fail("Failed to complete session", ErrorCode.STORE)

    payment_service.release_payout(session)
    notification_service.create_session_notifications(db, session, "completed")
    return ok(
        session_id=session.id,
        status="completed",
        message="Session completed successfully. Payment released to tutor.",
    )


# ======================
# PARTICIPANT ENTRY POINTS
# ======================

def _load_for_participant(
    db: Session, session_id: int, user_id: int, role: str, expected_status: str
):
    session = db.get(TutoringSession, session_id)
    if not session:
        return None, fail("Session not found.", ErrorCode.NOT_FOUND)
    owner_id = session.tutor_id if role == "tutor" else session.student_id
    if owner_id != user_id:
        return None, fail(f"Only the session's {role} can do this.", ErrorCode.FORBIDDEN)
    if session.status != expected_status:
        return None, fail(
            f"Session is {session.status}, expected {expected_status}.",
            ErrorCode.CONFLICT,
        )
    return session, None


def accept_session(db: Session, session_id: int, tutor_id: int) -> Dict[str, Any]:
    """Tutor accepts a pending request."""
    _, error = _load_for_participant(db, session_id, tutor_id, "tutor", "pending")
    if error:
        return error
    return update_session_status(db, session_id, "confirmed")


def decline_session(db: Session, session_id: int, tutor_id: int) -> Dict[str, Any]:
    """Tutor declines a pending request; the student is refunded."""
    _, error = _load_for_participant(db, session_id, tutor_id, "tutor", "pending")
    if error:
        return error
    return update_session_status(db, session_id, "cancelled")


def tutor_reschedule(
    db: Session, session_id: int, tutor_id: int, **new_time: Any
) -> Dict[str, Any]:
    _, error = _load_for_participant(db, session_id, tutor_id, "tutor", "confirmed")
    if error:
        return error
    return reschedule_session(db, session_id, **new_time)


def accept_reschedule(db: Session, session_id: int, student_id: int) -> Dict[str, Any]:
    """Student accepts the tutor's new time."""
    _, error = _load_for_participant(db, session_id, student_id, "student", "rescheduled")
    if error:
        return error
    return update_session_status(db, session_id, "confirmed")


def decline_reschedule(db: Session, session_id: int, student_id: int) -> Dict[str, Any]:
    """Student rejects the new time; the session is cancelled and refunded."""
    _, error = _load_for_participant(db, session_id, student_id, "student", "rescheduled")
    if error:
        return error
    return update_session_status(db, session_id, "cancelled")
