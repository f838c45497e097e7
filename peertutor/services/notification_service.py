from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from peertutor import models
from peertutor.database import with_db_retry
from peertutor.models.notification import Notification
from peertutor.services.results import ErrorCode, fail, ok
from peertutor.utils.email import is_email_enabled, send_email

logger = logging.getLogger(__name__)


EMAIL_SUBJECT_BY_TYPE = {
    "session_requested": "New session request on PeerTutor",
    "session_confirmed": "Your session was confirmed on PeerTutor",
    "session_declined": "Session request update on PeerTutor",
    "session_rescheduled": "Your session was rescheduled on PeerTutor",
    "session_completed": "Session completed on PeerTutor",
    "session_cancelled": "Session cancelled on PeerTutor",
    "review_received": "You received a new review on PeerTutor",
    "password_reset": "Reset your PeerTutor password",
}


def list_user_notifications(
    db: Session,
    *,
    user_id: int,
    unread_only: bool = False,
    limit: int = 50,
) -> Dict[str, Any]:
    try:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        notifications = with_db_retry(
            "notifications.list",
            query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all,
        )
    except SQLAlchemyError:
        logger.exception("Error loading notifications for user %s", user_id)
        return fail("Failed to load notifications", ErrorCode.STORE)
    return ok(notifications=notifications)


def mark_notification_read(
    db: Session,
    *,
    user_id: int,
    notification_id: int,
) -> Dict[str, Any]:
    try:
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        ).first()
        if not notification:
            return fail("Notification not found", ErrorCode.NOT_FOUND)
        notification.is_read = True
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error marking notification %s read", notification_id)
        return fail("Failed to update notification", ErrorCode.STORE)
    return ok(notification=notification)


def mark_all_notifications_read(db: Session, *, user_id: int) -> Dict[str, Any]:
    try:
        updated = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        ).update({"is_read": True}, synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error marking notifications read for user %s", user_id)
        return fail("Failed to update notifications", ErrorCode.STORE)
    return ok(updated=int(updated))


def get_unread_count(db: Session, *, user_id: int) -> Dict[str, Any]:
    try:
        query = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
        count = with_db_retry("notifications.unread_count", query.count)
    except SQLAlchemyError:
        logger.exception("Error counting notifications for user %s", user_id)
        return fail("Failed to count notifications", ErrorCode.STORE)
    return ok(unread=count)


def create_notification(
    db: Session,
    *,
    user_id: int,
    title: str,
    message: str,
    type: str,
    related_id: Optional[int] = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        related_id=related_id,
    )
    db.add(notification)
    db.flush()
    return notification


def notify(
    db: Session,
    *,
    user_id: int,
    title: str,
    message: str,
    type: str,
    related_id: Optional[int] = None,
) -> Optional[Notification]:
    """
    Fire-and-forget notification: persist it, commit, then try e-mail.

    Never raises. A failure is logged and the caller's operation is unaffected.
    """
    try:
        notification = create_notification(
            db,
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            related_id=related_id,
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Notification for user %s (%s) not stored: %s", user_id, type, exc)
        return None

    dispatch_email_for_notification(db, notification)
    return notification


def create_session_notifications(db: Session, session: models.TutoringSession, action: str) -> int:
    """Notify the relevant participants about a session lifecycle event.

    Returns the number of notifications stored.
    """
    when = f"{session.date} at {session.start_time}-{session.end_time}"
    subject = session.subject

    if action == "requested":
        targets = [
            (session.tutor_id, "New Session Request",
             f"{session.student_name or 'A student'} has requested a {subject} session with you on {when}."),
        ]
    elif action == "confirmed":
        targets = [
            (session.student_id, "Session Confirmed",
             f"Your {subject} session on {when} has been confirmed."),
        ]
    elif action == "declined":
        targets = [
            (session.student_id, "Session Declined",
             f"Your {subject} session request for {when} was declined. Your payment has been refunded."),
        ]
    elif action == "rescheduled":
        targets = [
            (session.student_id, "Session Rescheduled",
             f"Your {subject} session has been moved to {when}. Please accept or decline the new time."),
        ]
    elif action == "cancelled":
        targets = [
            (session.tutor_id, "Session Cancelled",
             f"A {subject} session on {when} has been cancelled."),
            (session.student_id, "Session Cancelled",
             f"Your {subject} session on {when} has been cancelled."),
        ]
    elif action == "completed":
        targets = [
            (session.tutor_id, "Session Completed",
             f"Your {subject} session on {session.date} has been completed and payment has been released."),
            (session.student_id, "Session Completed",
             f"Your {subject} session on {session.date} has been marked as completed."),
        ]
    else:
        logger.warning("Unknown session notification action %r for session %s", action, session.id)
        return 0

    sent = 0
    for user_id, title, message in targets:
        if notify(
            db,
            user_id=user_id,
            title=title,
            message=message,
            type=f"session_{action}",
            related_id=session.id,
        ):
            sent += 1
    return sent


def _send_notification_email(to_email: str, subject: str, body_text: str, *, notification_id: Optional[int], user_id: Optional[int]) -> None:
    """Send SMTP mail in a background thread so request latency stays low."""
    sent = send_email(
        to_email=to_email,
        subject=subject,
        body_text=body_text,
    )
    if not sent:
        logger.info(
            "Notification email not sent (user_id=%s, notification_id=%s)",
            user_id,
            notification_id,
        )


def dispatch_email_for_notification(db: Session, notification: Notification) -> bool:
    """
    Best-effort email delivery for a committed notification.
    This function never raises and should not impact request success.
    """
    try:
        if not is_email_enabled():
            return False

        recipient = db.query(models.User).filter(
            models.User.id == notification.user_id
        ).first()
        if not recipient or not recipient.email:
            return False

        subject = EMAIL_SUBJECT_BY_TYPE.get(
            notification.type,
            "New notification from PeerTutor",
        )
        recipient_name = (recipient.full_name or "there").strip() or "there"
        body_text = (
            f"Hi {recipient_name},\n\n"
            f"{notification.title}\n"
            f"{notification.message}\n\n"
            "Open PeerTutor to view details."
        )

        worker = threading.Thread(
            target=_send_notification_email,
            args=(
                recipient.email,
                subject,
                body_text,
            ),
            kwargs={
                "notification_id": getattr(notification, "id", None),
                "user_id": notification.user_id,
            },
            daemon=True,
        )
        worker.start()
        return True
    except Exception as exc:
        logger.warning(
            "Notification email dispatch failed (notification_id=%s): %s",
            getattr(notification, "id", None),
            exc,
        )
        return False
