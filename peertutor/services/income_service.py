# peertutor/services/income_service.py
"""Earnings summary for a tutor's income screen."""

import calendar
import logging
from collections import OrderedDict
from datetime import date as date_cls, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from peertutor.models.session import TutoringSession
from peertutor.services.results import ErrorCode, fail, ok
from peertutor.services.session_service import serialize_session

logger = logging.getLogger(__name__)


def _session_day(session: TutoringSession) -> Optional[date_cls]:
    try:
        return date_cls.fromisoformat(session.date)
    except (TypeError, ValueError):
        return None


def _total(sessions: List[TutoringSession]) -> float:
    return float(sum(s.total_amount or 0.0 for s in sessions))


def _previous_month(year: int, month: int):
    return (year - 1, 12) if month == 1 else (year, month - 1)


def get_tutor_income(db: Session, tutor_id: int, *, today: Optional[date_cls] = None) -> Dict[str, Any]:
    """
    Income from completed sessions, plus expected income from confirmed ones.

    ``monthly_growth`` is the percent change from last month to this month and
    is reported as 100 when last month earned nothing.
    """
    today = today or date_cls.today()
    try:
        completed = db.query(TutoringSession).filter(
            TutoringSession.tutor_id == tutor_id,
            TutoringSession.status == "completed",
        ).all()
        upcoming = db.query(TutoringSession).filter(
            TutoringSession.tutor_id == tutor_id,
            TutoringSession.status == "confirmed",
        ).all()
    except SQLAlchemyError:
        logger.exception("Error loading income for tutor %s", tutor_id)
        return fail("Failed to load income", ErrorCode.STORE)

    dated = [(s, _session_day(s)) for s in completed]

    monthly: Dict[tuple, Dict[str, Any]] = {}
    for session, day in dated:
        if day is None:
            continue
        entry = monthly.setdefault((day.year, day.month), {
            "month": calendar.month_name[day.month],
            "year": day.year,
            "month_number": day.month,
            "amount": 0.0,
            "session_count": 0,
        })
        entry["amount"] += session.total_amount or 0.0
        entry["session_count"] += 1
    monthly_income = [monthly[key] for key in sorted(monthly, reverse=True)]

    by_subject: Dict[str, Dict[str, Any]] = OrderedDict()
    for session in completed:
        entry = by_subject.setdefault(session.subject, {
            "subject": session.subject,
            "amount": 0.0,
            "session_count": 0,
        })
        entry["amount"] += session.total_amount or 0.0
        entry["session_count"] += 1
    subject_income = sorted(by_subject.values(), key=lambda e: e["amount"], reverse=True)

    prev_year, prev_month = _previous_month(today.year, today.month)
    current_month_income = _total([s for s, d in dated if d and (d.year, d.month) == (today.year, today.month)])
    previous_month_income = _total([s for s, d in dated if d and (d.year, d.month) == (prev_year, prev_month)])
    if previous_month_income > 0:
        monthly_growth = (current_month_income - previous_month_income) / previous_month_income * 100
    else:
        monthly_growth = 100.0

    thirty_days_ago = today - timedelta(days=30)
    recent_income = _total([s for s, d in dated if d and d >= thirty_days_ago])

    return ok(
        total_income=_total(completed),
        monthly_income=monthly_income,
        subject_income=subject_income,
        upcoming_income=_total(upcoming),
        unique_student_count=len({s.student_id for s in completed}),
        current_month_income=current_month_income,
        previous_month_income=previous_month_income,
        monthly_growth=monthly_growth,
        recent_income=recent_income,
        completed_sessions=[serialize_session(s) for s in completed],
    )
