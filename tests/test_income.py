"""Tutor income summary."""

from datetime import date

import pytest

from conftest import make_session, make_user
from peertutor.services import income_service

TODAY = date(2024, 3, 15)


def _completed(db, day, amount, subject="mathematics", student_id=2):
    return make_session(
        db, status="completed", date=day, subject=subject, student_id=student_id,
        hours=1, hourly_rate=amount, total_amount=amount,
    )


def test_income_summary(db_session, tutor, student):
    make_user(db_session, 3)
    _completed(db_session, "2024-03-10", 40.0)
    _completed(db_session, "2024-03-01", 20.0, subject="physics", student_id=3)
    _completed(db_session, "2024-02-20", 30.0)
    _completed(db_session, "2023-12-05", 60.0, subject="physics")
    make_session(db_session, status="confirmed", date="2024-03-20", total_amount=25.0)
    make_session(db_session, status="cancelled", date="2024-03-05", total_amount=99.0)

    income = income_service.get_tutor_income(db_session, tutor.id, today=TODAY)

    assert income["total_income"] == 150.0
    assert income["upcoming_income"] == 25.0
    assert income["unique_student_count"] == 2
    assert income["current_month_income"] == 60.0
    assert income["previous_month_income"] == 30.0
    assert income["monthly_growth"] == pytest.approx(100.0)
    assert income["recent_income"] == 90.0
    assert len(income["completed_sessions"]) == 4

    months = [(m["month"], m["year"], m["amount"], m["session_count"]) for m in income["monthly_income"]]
    assert months == [
        ("March", 2024, 60.0, 2),
        ("February", 2024, 30.0, 1),
        ("December", 2023, 60.0, 1),
    ]
    assert [(s["subject"], s["amount"]) for s in income["subject_income"]] == [
        ("physics", 80.0),
        ("mathematics", 70.0),
    ]


def test_growth_is_100_when_last_month_earned_nothing(db_session, tutor, student):
    _completed(db_session, "2024-03-02", 10.0)

    income = income_service.get_tutor_income(db_session, tutor.id, today=TODAY)

    assert income["previous_month_income"] == 0.0
    assert income["monthly_growth"] == 100.0


def test_growth_can_be_negative(db_session, tutor, student):
    _completed(db_session, "2024-02-10", 40.0)
    _completed(db_session, "2024-03-10", 10.0)

    income = income_service.get_tutor_income(db_session, tutor.id, today=TODAY)

    assert income["monthly_growth"] == pytest.approx(-75.0)


def test_january_compares_with_previous_december(db_session, tutor, student):
    _completed(db_session, "2023-12-10", 20.0)
    _completed(db_session, "2024-01-10", 30.0)

    income = income_service.get_tutor_income(db_session, tutor.id, today=date(2024, 1, 20))

    assert income["previous_month_income"] == 20.0
    assert income["monthly_growth"] == pytest.approx(50.0)


def test_no_income(db_session, tutor):
    income = income_service.get_tutor_income(db_session, tutor.id, today=TODAY)

    assert income["total_income"] == 0.0
    assert income["monthly_income"] == []
    assert income["unique_student_count"] == 0
