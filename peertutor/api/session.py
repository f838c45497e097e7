# peertutor/api/session.py
"""
Session booking and lifecycle endpoints.

Every transition has its own endpoint that checks which participant is
calling before handing over to the session services.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from peertutor.api.responses import unwrap
from peertutor.database import get_db
from peertutor.models.user import User
from peertutor.schemas.session import BookSessionRequest, RescheduleRequest, SessionResponse
from peertutor.services import booking_service, session_service
from peertutor.utils.security import get_current_user

router = APIRouter(prefix="/sessions", tags=["sessions"])


# ======================
# BOOK
# ======================
@router.post("/", status_code=status.HTTP_201_CREATED)
def book_session(
    payload: BookSessionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    tutor = db.get(User, payload.tutor_id)
    if not tutor or not tutor.is_tutor or not tutor.is_active:
        raise HTTPException(status_code=404, detail="Tutor not found")

    return unwrap(booking_service.book_session(
        db,
        tutor_id=tutor.id,
        student_id=current_user.id,
        date=payload.date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        subject=payload.subject,
        hourly_rate=tutor.hourly_rate,
        tutor_name=tutor.full_name,
        student_name=current_user.full_name,
        tutor_phone_number=tutor.phone_number or "",
    ))


# ======================
# READ
# ======================
@router.get("/mine")
def get_my_sessions(
    role: Optional[str] = Query(None, description="tutor or student; defaults to the caller's role"),
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    role = role or ("tutor" if current_user.is_tutor else "student")
    if role not in ("tutor", "student"):
        raise HTTPException(status_code=400, detail="role must be tutor or student")
    return unwrap(session_service.get_user_sessions(db, current_user.id, role, status_filter))["sessions"]


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    session = session_service.get_session(db, session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    if current_user.id not in (session.student_id, session.tutor_id) and not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Not authorized to view this session")
    return session_service.serialize_session(session)


# ======================
# TUTOR ACTIONS
# ======================
@router.post("/{session_id}/accept")
def accept_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return unwrap(session_service.accept_session(db, session_id, current_user.id))


@router.post("/{session_id}/decline")
def decline_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return unwrap(session_service.decline_session(db, session_id, current_user.id))


@router.post("/{session_id}/reschedule")
def reschedule_session(
    session_id: int,
    payload: RescheduleRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return unwrap(session_service.tutor_reschedule(
        db,
        session_id,
        current_user.id,
        date=payload.date,
        start_time=payload.start_time,
        end_time=payload.end_time,
    ))


# ======================
# STUDENT ACTIONS
# ======================
@router.post("/{session_id}/accept-reschedule")
def accept_reschedule(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return unwrap(session_service.accept_reschedule(db, session_id, current_user.id))


@router.post("/{session_id}/decline-reschedule")
def decline_reschedule(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return unwrap(session_service.decline_reschedule(db, session_id, current_user.id))


@router.post("/{session_id}/cancel")
def cancel_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return unwrap(booking_service.cancel_session(db, session_id, current_user.id))


@router.post("/{session_id}/complete")
def complete_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return unwrap(session_service.complete_session_and_release_payment(db, session_id, current_user.id))
