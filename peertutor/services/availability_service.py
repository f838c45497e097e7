# peertutor/services/availability_service.py
"""
Availability Store

One AvailabilityDay row per (tutor, date) holding 1-hour slots. Tutors add and
remove free slots here; the booking service is the only other writer and it is
the one that flips ``is_booked``/``session_id``.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from peertutor.database import with_db_retry
from peertutor.models.availability import AvailabilityDay, availability_key
from peertutor.schemas.availability import Slot
from peertutor.services.results import ErrorCode, fail, ok
from peertutor.utils import timeslots

logger = logging.getLogger(__name__)


# ======================
# HELPERS
# ======================

def load_slots(day: AvailabilityDay) -> List[Slot]:
    """Validate the stored JSON slots into Slot records."""
    return [Slot.model_validate(raw) for raw in (day.slots or [])]


def dump_slots(slots: List[Slot]) -> List[Dict[str, Any]]:
    ordered = sorted(slots, key=lambda s: s.start_time)
    return [s.model_dump() for s in ordered]


def serialize_day(day: AvailabilityDay) -> Dict[str, Any]:
    return {
        "id": day.id,
        "tutor_id": day.tutor_id,
        "date": day.date,
        "slots": dump_slots(load_slots(day)),
    }


def get_day(db: Session, tutor_id: int, date_str: str) -> Optional[AvailabilityDay]:
    key = availability_key(tutor_id, date_str)
    return with_db_retry("availability.get_day", lambda: db.get(AvailabilityDay, key))


def _validate_slot_request(
    date_value, start_time, end_time, today: Optional[date]
) -> Dict[str, Any]:
    """Normalize and check a (date, start, end) request.

    Returns ``{"date", "start_time", "end_time"}`` or a failure envelope.
    """
    if not date_value:
        return fail("Date is required")
    date_str = timeslots.normalize_date(date_value)
    if date_str is None:
        return fail("Invalid date format")
    if not start_time or not timeslots.is_valid_time(start_time):
        return fail("Start time is required")
    if not timeslots.is_on_the_hour(start_time):
        return fail("Start time must be on the hour")
    start_time = timeslots.normalize_time(start_time)
    if timeslots.parse_hour(start_time) > 23:
        return fail("Start time must be before 24:00")

    if end_time:
        if not timeslots.is_valid_time(end_time) or not timeslots.is_on_the_hour(end_time):
            return fail("End time must be on the hour")
        end_time = timeslots.normalize_time(end_time)
    else:
        end_time = timeslots.default_end_time(start_time)

    if timeslots.parse_hour(end_time) <= timeslots.parse_hour(start_time):
        return fail("End time must be after start time")
    if timeslots.is_past_date(date_str, today):
        return fail("Cannot change availability for a past date")

    return {"date": date_str, "start_time": start_time, "end_time": end_time}


# ======================
# ADD / REMOVE
# ======================

def add_slots(
    db: Session,
    tutor_id: int,
    date_value,
    start_time: str,
    end_time: Optional[str] = None,
    *,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Publish 1-hour slots spanning [start_time, end_time) for a tutor's date.

    Fails without writing anything if any requested hour already exists in
    that day, booked or not.
    """
    request = _validate_slot_request(date_value, start_time, end_time, today)
    if request.get("success") is False:
        return request

    date_str = request["date"]
    new_slots = [
        Slot(start_time=hour, end_time=timeslots.default_end_time(hour))
        for hour in timeslots.hour_starts(request["start_time"], request["end_time"])
    ]

    try:
        day = get_day(db, tutor_id, date_str)
        if day is None:
            day = AvailabilityDay(
                id=availability_key(tutor_id, date_str),
                tutor_id=tutor_id,
                date=date_str,
                slots=dump_slots(new_slots),
            )
            db.add(day)
        else:
            existing = load_slots(day)
            existing_starts = {s.start_time for s in existing}
            if any(s.start_time in existing_starts for s in new_slots):
                return fail(
                    "Some of these hours are already set as available.",
                    ErrorCode.CONFLICT,
                )
            day.slots = dump_slots(existing + new_slots)

        db.commit()
    except StaleDataError:
        db.rollback()
        logger.info("Concurrent availability update for %s on %s", tutor_id, date_str)
        return fail("Availability changed while saving, please try again.", ErrorCode.CONFLICT)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error adding availability for tutor %s on %s", tutor_id, date_str)
        return fail("Failed to add availability", ErrorCode.STORE)

    logger.info(
        "Tutor %s added %s slot(s) on %s", tutor_id, len(new_slots), date_str
    )
    return ok(availability=serialize_day(day), added=[s.start_time for s in new_slots])


def remove_slot(
    db: Session,
    tutor_id: int,
    date_value,
    start_time: str,
    end_time: Optional[str] = None,
    *,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Remove one unbooked slot. The day row is deleted with its last slot.
    """
    request = _validate_slot_request(date_value, start_time, end_time, today)
    if request.get("success") is False:
        return request

    date_str = request["date"]
    start_time = request["start_time"]

    try:
        day = get_day(db, tutor_id, date_str)
        if day is None:
            return fail("No availability found for this date.", ErrorCode.NOT_FOUND)

        slots = load_slots(day)
        target = next((s for s in slots if s.start_time == start_time), None)
        if target is None:
            return fail("Cannot find the slot.", ErrorCode.NOT_FOUND)
        if target.is_booked:
            return fail("This slot is already booked by a student.", ErrorCode.CONFLICT)

        remaining = [s for s in slots if s.start_time != start_time]
        if remaining:
            day.slots = dump_slots(remaining)
        else:
            db.delete(day)
        db.commit()
    except StaleDataError:
        db.rollback()
        return fail("Availability changed while saving, please try again.", ErrorCode.CONFLICT)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error removing availability for tutor %s on %s", tutor_id, date_str)
        return fail("Failed to remove availability", ErrorCode.STORE)

    return ok(date=date_str, removed=start_time, day_deleted=not remaining)


# ======================
# QUERIES
# ======================

def query_range(db: Session, tutor_id: int, start_date, end_date) -> Dict[str, Any]:
    """All availability days for a tutor with start_date <= date <= end_date."""
    start_str = timeslots.normalize_date(start_date)
    end_str = timeslots.normalize_date(end_date)
    if start_str is None or end_str is None:
        return fail("Invalid date format")

    try:
        days = with_db_retry(
            "availability.query_range",
            lambda: db.query(AvailabilityDay)
            .filter(
                AvailabilityDay.tutor_id == tutor_id,
                AvailabilityDay.date >= start_str,
                AvailabilityDay.date <= end_str,
            )
            .order_by(AvailabilityDay.date)
            .all(),
        )
    except SQLAlchemyError:
        logger.exception("Error getting availability for tutor %s", tutor_id)
        return fail("Failed to load availability", ErrorCode.STORE)

    return ok(availability=[serialize_day(d) for d in days])
