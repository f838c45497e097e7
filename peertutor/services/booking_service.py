# peertutor/services/booking_service.py
"""
Booking Engine

Books a contiguous run of 1-hour slots for a student and releases them again
on cancellation. The availability row is written with an optimistic version
check, so two students racing for the same slot cannot both win: the loser's
whole unit of work (including its new session row) is rolled back.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from peertutor.config import settings
from peertutor.models.availability import AvailabilityDay
from peertutor.models.session import TutoringSession
from peertutor.services import notification_service, payment_service
from peertutor.services.availability_service import dump_slots, get_day, load_slots
from peertutor.services.results import ErrorCode, fail, ok, partial
from peertutor.utils import timeslots

logger = logging.getLogger(__name__)

SLOTS_UNAVAILABLE = "Some of the requested time slots are not available."
RELEASE_ATTEMPTS = 3


# ======================
# BOOK
# ======================

def book_session(
    db: Session,
    *,
    tutor_id: int,
    student_id: int,
    date: Any,
    start_time: str,
    end_time: str,
    subject: str,
    hourly_rate: float,
    tutor_name: str = "",
    student_name: str = "",
    tutor_phone_number: str = "",
    today=None,
) -> Dict[str, Any]:
    """
    Book [start_time, end_time) on a tutor's date for a student.

    Either every requested hour is booked for the new session or none is.
    The session is created ``pending`` and already ``paid`` (simulated).
    """
    if not tutor_id or not student_id:
        return fail("Tutor and student are required")
    if tutor_id == student_id:
        return fail("Cannot book a session with yourself")
    date_str = timeslots.normalize_date(date)
    if date_str is None:
        return fail("Invalid date format")
    for value in (start_time, end_time):
        if not timeslots.is_valid_time(value or "") or not timeslots.is_on_the_hour(value):
            return fail("Start and end times must be on the hour (HH:00)")
    start_time = timeslots.normalize_time(start_time)
    end_time = timeslots.normalize_time(end_time)
    wanted = timeslots.hour_starts(start_time, end_time)
    if not wanted:
        return fail("End time must be after start time")
    if timeslots.is_past_date(date_str, today):
        return fail("Cannot book a session in the past")
    if not subject or not subject.strip():
        return fail("Subject is required")
    try:
        hourly_rate = float(hourly_rate)
    except (TypeError, ValueError):
        return fail("Hourly rate must be a number")
    if hourly_rate <= 0:
        return fail("Hourly rate must be positive")

    try:
        day = get_day(db, tutor_id, date_str)
        if day is None:
            return fail("No availability found for this date.", ErrorCode.NOT_FOUND)

        by_start = {slot.start_time: slot for slot in load_slots(day)}
        unavailable = [h for h in wanted if h not in by_start or by_start[h].is_booked]
        if unavailable:
            logger.info(
                "Booking rejected for tutor %s on %s: unavailable %s",
                tutor_id, date_str, unavailable,
            )
            return fail(SLOTS_UNAVAILABLE, ErrorCode.CONFLICT, unavailable=unavailable)

        hours = len(wanted)
        session = TutoringSession(
            tutor_id=tutor_id,
            student_id=student_id,
            subject=subject.strip(),
            date=date_str,
            start_time=start_time,
            end_time=end_time,
            hours=hours,
            hourly_rate=hourly_rate,
            total_amount=hours * hourly_rate,
            status="pending",
            payment_status="paid",
            payment_id=payment_service.new_payment_id(),
            tutor_name=tutor_name or "",
            student_name=student_name or "",
            tutor_phone_number=tutor_phone_number or "",
        )
        db.add(session)
        db.flush()

        for hour in wanted:
            by_start[hour] = by_start[hour].model_copy(
                update={"is_booked": True, "session_id": session.id}
            )
        day.slots = dump_slots(list(by_start.values()))
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.info("Lost booking race for tutor %s on %s %s-%s", tutor_id, date_str, start_time, end_time)
        return fail(SLOTS_UNAVAILABLE, ErrorCode.CONFLICT)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error booking session with tutor %s on %s", tutor_id, date_str)
        return fail("Failed to book session", ErrorCode.STORE)

    logger.info("Session %s booked: tutor=%s student=%s %s %s-%s",
                session.id, tutor_id, student_id, date_str, start_time, end_time)
    notification_service.create_session_notifications(db, session, "requested")

    return ok(
        session_id=session.id,
        hours=session.hours,
        total_amount=session.total_amount,
        payment_id=session.payment_id,
    )


# ======================
# RELEASE
# ======================

def release_session_slots(db: Session, session: TutoringSession) -> Dict[str, Any]:
    """
    Free every slot held by ``session`` across the tutor's availability days.

    Idempotent, so a lost optimistic-lock race is simply retried. No
    authorization happens here; callers decide who may release.
    """
    session_id = session.id
    tutor_id = session.tutor_id

    for attempt in range(1, RELEASE_ATTEMPTS + 1):
        released = 0
        try:
            days = db.query(AvailabilityDay).filter(AvailabilityDay.tutor_id == tutor_id).all()
            for day in days:
                slots = load_slots(day)
                if not any(s.session_id == session_id for s in slots):
                    continue
                updated = []
                for slot in slots:
                    if slot.session_id == session_id:
                        slot = slot.model_copy(update={"is_booked": False, "session_id": None})
                        released += 1
                    updated.append(slot)
                day.slots = dump_slots(updated)
            db.commit()
            return ok(released=released)
        except StaleDataError:
            db.rollback()
            logger.info("Retrying slot release for session %s (attempt %s)", session_id, attempt)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Error releasing slots for session %s", session_id)
            return fail("Failed to release availability slots", ErrorCode.STORE)

    return fail("Failed to release availability slots", ErrorCode.STORE)


# ======================
# CANCEL (student)
# ======================

def cancel_session(
    db: Session,
    session_id: int,
    requesting_user_id: int,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Student-initiated cancellation, at least CANCELLATION_CUTOFF_HOURS ahead.

    The status change is committed first; slot release and refund follow and
    a failure in either is reported as a partial error.
    """
    now = now or datetime.now()
    cutoff_hours = settings.CANCELLATION_CUTOFF_HOURS

    try:
        session = db.get(TutoringSession, session_id)
        if not session:
            return fail("Session not found.", ErrorCode.NOT_FOUND)
        if session.student_id != requesting_user_id:
            return fail("You don't have permission to cancel this session.", ErrorCode.FORBIDDEN)
        if session.status in ("cancelled", "completed"):
            return fail(f"Session is already {session.status}.", ErrorCode.CONFLICT)

        start = timeslots.session_start(session.date, session.start_time)
        if start - now < timedelta(hours=cutoff_hours):
            cutoff = timeslots.cutoff_instant(start, cutoff_hours)
            return fail(
                "Cancellation failed. Sessions must be cancelled at least "
                f"{cutoff_hours} hours in advance (no later than {cutoff:%Y-%m-%d %H:%M}).",
                ErrorCode.CONFLICT,
                cutoff=cutoff.isoformat(),
            )

        session.status = "cancelled"
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error cancelling session %s", session_id)
        return fail("Failed to cancel session", ErrorCode.STORE)

    logger.info("Session %s cancelled by student %s", session_id, requesting_user_id)

    problems = []
    release = release_session_slots(db, session)
    if not release["success"]:
        problems.append("availability slots could not be released")

    refunded = False
    if session.payment_status == "paid":
        refund = payment_service.process_refund(db, session.id)
        refunded = refund["success"]
        if not refunded:
            problems.append("refund could not be processed")

    notification_service.create_session_notifications(db, session, "cancelled")

    if problems:
        return partial(
            "Session cancelled but " + " and ".join(problems) + ".",
            session_id=session.id,
            status="cancelled",
        )
    return ok(session_id=session.id, status="cancelled", released=release["released"], refunded=refunded)
