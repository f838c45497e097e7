from __future__ import annotations

import threading

from sqlalchemy.exc import OperationalError

from conftest import make_session
from peertutor.services import notification_service
from peertutor.services.results import ErrorCode


# ==========================================
# STORE / READ
# ==========================================

def test_notification_service_crud_flow(db_session, student):
    notification_service.create_notification(
        db_session, user_id=student.id, title="Requested", message="Requested", type="session_requested",
    )
    notification_service.create_notification(
        db_session, user_id=student.id, title="Confirmed", message="Confirmed", type="session_confirmed",
    )
    db_session.commit()

    unread = notification_service.list_user_notifications(db_session, user_id=student.id, unread_only=True)
    assert len(unread["notifications"]) == 2
    assert notification_service.get_unread_count(db_session, user_id=student.id)["unread"] == 2

    marked = notification_service.mark_notification_read(
        db_session, user_id=student.id, notification_id=unread["notifications"][0].id
    )
    assert marked["notification"].is_read is True
    assert notification_service.get_unread_count(db_session, user_id=student.id)["unread"] == 1

    assert notification_service.mark_all_notifications_read(db_session, user_id=student.id)["updated"] == 1
    assert notification_service.get_unread_count(db_session, user_id=student.id)["unread"] == 0


def test_cannot_mark_someone_elses_notification(db_session, student, other_student):
    note = notification_service.notify(
        db_session, user_id=student.id, title="t", message="m", type="session_requested",
    )

    result = notification_service.mark_notification_read(
        db_session, user_id=other_student.id, notification_id=note.id
    )
    assert result["code"] == ErrorCode.NOT_FOUND


def test_store_failures_come_back_as_envelopes(db_session, student, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "query", broken)

    assert notification_service.list_user_notifications(db_session, user_id=student.id)["code"] == ErrorCode.STORE
    assert notification_service.get_unread_count(db_session, user_id=student.id)["code"] == ErrorCode.STORE
    assert notification_service.mark_all_notifications_read(db_session, user_id=student.id)["code"] == ErrorCode.STORE
    assert notification_service.mark_notification_read(
        db_session, user_id=student.id, notification_id=1
    )["code"] == ErrorCode.STORE


# ==========================================
# SESSION EVENTS
# ==========================================

def test_session_event_targets(db_session, tutor, student):
    session = make_session(db_session, student_name="Sam Student")

    assert notification_service.create_session_notifications(db_session, session, "requested") == 1
    assert notification_service.create_session_notifications(db_session, session, "cancelled") == 2
    assert notification_service.create_session_notifications(db_session, session, "unknown") == 0

    tutor_notes = notification_service.list_user_notifications(db_session, user_id=tutor.id)["notifications"]
    assert {n.type for n in tutor_notes} == {"session_requested", "session_cancelled"}
    requested = next(n for n in tutor_notes if n.type == "session_requested")
    assert "Sam Student" in requested.message
    assert requested.related_id == session.id


def test_email_is_skipped_when_smtp_is_not_configured(db_session, student, monkeypatch):
    monkeypatch.setattr(notification_service, "is_email_enabled", lambda: False)
    sent = []
    monkeypatch.setattr(notification_service, "send_email", lambda **kw: sent.append(kw) or True)

    note = notification_service.notify(
        db_session, user_id=student.id, title="t", message="m", type="session_confirmed",
    )

    assert note is not None
    assert sent == []


def test_email_goes_out_on_a_background_thread(db_session, student, monkeypatch):
    delivered = threading.Event()
    calls = []

    def fake_send(to_email, subject, body_text, *, notification_id, user_id):
        calls.append((to_email, subject, user_id))
        delivered.set()

    monkeypatch.setattr(notification_service, "is_email_enabled", lambda: True)
    monkeypatch.setattr(notification_service, "_send_notification_email", fake_send)

    notification_service.notify(
        db_session, user_id=student.id, title="t", message="m", type="session_confirmed",
    )

    assert delivered.wait(timeout=5)
    assert calls == [("student@test.edu", "Your session was confirmed on PeerTutor", student.id)]
