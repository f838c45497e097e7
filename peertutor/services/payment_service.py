# peertutor/services/payment_service.py
"""
Simulated payment rail.

No processor is called: payments always succeed and refunds only flip the
session's payment status. Payouts to tutors are logged.
"""

import logging
import time
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from peertutor.models.session import TutoringSession
from peertutor.services.results import ErrorCode, fail, ok

logger = logging.getLogger(__name__)


def new_payment_id() -> str:
    return f"sim_{int(time.time() * 1000)}"


def process_payment(db: Session, session_id: int) -> Dict[str, Any]:
    """Mark a session as paid with a simulated payment id."""
    try:
        session = db.get(TutoringSession, session_id)
        if not session:
            return fail("Session not found.", ErrorCode.NOT_FOUND)

        payment_id = new_payment_id()
        session.payment_status = "paid"
        session.payment_id = payment_id
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error processing payment for session %s", session_id)
        return fail("Failed to process payment", ErrorCode.STORE)

    return ok(payment_id=payment_id, message="Payment processed successfully")


def process_refund(db: Session, session_id: int) -> Dict[str, Any]:
    """Refund a paid session."""
    try:
        session = db.get(TutoringSession, session_id)
        if not session:
            return fail("Session not found.", ErrorCode.NOT_FOUND)
        if session.payment_status != "paid":
            return fail("Cannot refund a session that hasn't been paid.", ErrorCode.CONFLICT)

        session.payment_status = "refunded"
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error processing refund for session %s", session_id)
        return fail("Failed to process refund", ErrorCode.STORE)

    logger.info("Refunded %.2f for session %s", session.total_amount, session_id)
    return ok(message="Refund processed successfully")


def release_payout(session: TutoringSession) -> None:
    logger.info(
        "Released payout of %.2f to tutor %s for session %s",
        session.total_amount,
        session.tutor_id,
        session.id,
    )
