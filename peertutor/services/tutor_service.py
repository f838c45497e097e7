# peertutor/services/tutor_service.py
"""
Tutor profiles, the subject catalogue and tutor applications.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from peertutor.models.subject import Subject, TutorApplication
from peertutor.models.user import User
from peertutor.services import notification_service
from peertutor.services.auth_service import serialize_user
from peertutor.services.results import ErrorCode, fail, ok
from peertutor.utils import validation

logger = logging.getLogger(__name__)

DEFAULT_SUBJECTS = [
    ("mathematics", "Mathematics", "Math tutoring for all levels"),
    ("physics", "Physics", "Physics for high school and college"),
    ("chemistry", "Chemistry", "Chemistry tutoring"),
    ("biology", "Biology", "Biology courses and topics"),
    ("computer-science", "Computer Science", "Programming and computer science"),
    ("english", "English", "English language and literature"),
    ("history", "History", "World and local history"),
    ("economics", "Economics", "Micro and macroeconomics"),
    ("business", "Business Studies", "Business management and entrepreneurship"),
    ("accounting", "Accounting", "Financial and management accounting"),
]

PROFILE_FIELDS = {"full_name", "bio", "photo_url", "phone_number"}


# ======================
# SUBJECTS
# ======================

def get_all_subjects(db: Session) -> List[Dict[str, Any]]:
    subjects = db.query(Subject).order_by(Subject.name.asc()).all()
    return [{"id": s.id, "name": s.name, "description": s.description or ""} for s in subjects]


def ensure_default_subjects(db: Session) -> int:
    """Insert any missing default subjects; returns how many were created."""
    existing = {row[0] for row in db.query(Subject.id).all()}
    created = 0
    for slug, name, description in DEFAULT_SUBJECTS:
        if slug in existing:
            continue
        db.add(Subject(id=slug, name=name, description=description))
        created += 1
    db.commit()
    return created


def _load_tutor(db: Session, tutor_id: int) -> Optional[User]:
    tutor = db.get(User, tutor_id)
    if tutor is None or not tutor.is_tutor:
        return None
    return tutor


def add_subject_to_tutor(db: Session, tutor_id: int, subject_id: str) -> Dict[str, Any]:
    try:
        tutor = _load_tutor(db, tutor_id)
        if not tutor:
            return fail("Tutor not found", ErrorCode.NOT_FOUND)
        if not db.get(Subject, subject_id):
            return fail("Unknown subject", ErrorCode.NOT_FOUND)

        subjects = list(tutor.subjects or [])
        if subject_id not in subjects:
            subjects.append(subject_id)
            tutor.subjects = subjects
            db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error adding subject %s to tutor %s", subject_id, tutor_id)
        return fail("Failed to add subject", ErrorCode.STORE)
    return ok(subjects=subjects)


def remove_subject_from_tutor(db: Session, tutor_id: int, subject_id: str) -> Dict[str, Any]:
    try:
        tutor = _load_tutor(db, tutor_id)
        if not tutor:
            return fail("Tutor not found", ErrorCode.NOT_FOUND)
        subjects = [s for s in (tutor.subjects or []) if s != subject_id]
        tutor.subjects = subjects
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error removing subject %s from tutor %s", subject_id, tutor_id)
        return fail("Failed to remove subject", ErrorCode.STORE)
    return ok(subjects=subjects)


def update_tutor_hourly_rate(db: Session, tutor_id: int, hourly_rate: Any) -> Dict[str, Any]:
    if not validation.validate_hourly_rate(hourly_rate):
        return fail("Please enter a valid hourly rate")
    try:
        tutor = _load_tutor(db, tutor_id)
        if not tutor:
            return fail("Tutor not found", ErrorCode.NOT_FOUND)
        tutor.hourly_rate = float(hourly_rate)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating hourly rate for tutor %s", tutor_id)
        return fail("Failed to update hourly rate", ErrorCode.STORE)
    return ok(hourly_rate=tutor.hourly_rate)


# ======================
# BROWSE
# ======================

def get_all_tutors(db: Session, subject: Optional[str] = None, verified_only: bool = False) -> Dict[str, Any]:
    """Active tutors that teach at least one subject, best rated first."""
    try:
        query = db.query(User).filter(User.role == "tutor", User.is_active.is_(True))
        if verified_only:
            query = query.filter(User.is_verified.is_(True))
        tutors = query.order_by(User.rating.desc(), User.full_name.asc()).all()
    except SQLAlchemyError:
        logger.exception("Error loading tutors")
        return fail("Failed to load tutors", ErrorCode.STORE)

    # JSON array membership is filtered here to stay portable across databases.
    tutors = [t for t in tutors if t.subjects]
    if subject:
        tutors = [t for t in tutors if subject in t.subjects]
    return ok(tutors=[serialize_user(t) for t in tutors])


def get_user_profile(db: Session, user_id: int) -> Dict[str, Any]:
    user = db.get(User, user_id)
    if not user:
        return fail("User not found", ErrorCode.NOT_FOUND)
    return ok(user=serialize_user(user))


def update_user_profile(db: Session, user_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Update basic profile fields; unknown keys are rejected."""
    unknown = set(changes) - PROFILE_FIELDS
    if unknown:
        return fail(f"Cannot update: {', '.join(sorted(unknown))}")
    if "full_name" in changes and not (changes["full_name"] or "").strip():
        return fail("Full name is required")
    if changes.get("phone_number") and not validation.validate_phone_number(changes["phone_number"]):
        return fail("Please enter a valid phone number")

    try:
        user = db.get(User, user_id)
        if not user:
            return fail("User not found", ErrorCode.NOT_FOUND)
        for field, value in changes.items():
            setattr(user, field, value.strip() if isinstance(value, str) else value)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating profile for user %s", user_id)
        return fail("Failed to update profile", ErrorCode.STORE)
    return ok(user=serialize_user(user))


# ======================
# APPLICATIONS
# ======================

def serialize_application(application: TutorApplication) -> Dict[str, Any]:
    return {
        "user_id": application.user_id,
        "full_name": application.full_name,
        "email": application.email,
        "phone_number": application.phone_number,
        "status": application.status,
        "subjects": list(application.subjects or []),
        "experience": application.experience or "",
        "education": application.education or "",
        "gpa": application.gpa,
        "hourly_rate": application.hourly_rate,
        "exam_results_url": application.exam_results_url,
        "review_note": application.review_note,
        "created_at": application.created_at.isoformat() if application.created_at else None,
    }


def apply_for_tutor(db: Session, user_id: int, form: Dict[str, Any]) -> Dict[str, Any]:
    """A student asks to become a tutor; an admin approves or rejects later."""
    try:
        user = db.get(User, user_id)
        if not user:
            return fail("User not found", ErrorCode.NOT_FOUND)
        if user.is_tutor:
            return fail("You are already a tutor", ErrorCode.CONFLICT)

        check = validation.validate_tutor_form({**form, "email": user.email, "full_name": user.full_name})
        if not check["is_valid"]:
            return fail("Please correct the highlighted fields", errors=check["errors"])

        application = db.get(TutorApplication, user_id)
        if application and application.status == "pending":
            return fail("You already have a pending application", ErrorCode.CONFLICT)
        if application is None:
            application = TutorApplication(user_id=user_id)
            db.add(application)

        application.full_name = user.full_name
        application.email = user.email
        application.phone_number = form.get("phone_number") or ""
        application.subjects = list(form["subjects"])
        application.experience = form.get("experience") or ""
        application.education = form.get("education") or ""
        application.gpa = float(form["gpa"])
        application.hourly_rate = float(form["hourly_rate"])
        application.exam_results_url = form.get("exam_results_url")
        application.status = "pending"
        application.review_note = None
        application.reviewed_at = None
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error saving tutor application for user %s", user_id)
        return fail("Failed to submit application", ErrorCode.STORE)

    logger.info("Tutor application submitted by user %s", user_id)
    return ok(application=serialize_application(application))


def list_tutor_applications(db: Session, status: Optional[str] = "pending") -> List[Dict[str, Any]]:
    query = db.query(TutorApplication)
    if status:
        query = query.filter(TutorApplication.status == status)
    return [serialize_application(a) for a in query.order_by(TutorApplication.created_at.asc()).all()]


def review_tutor_application(
    db: Session, user_id: int, approve: bool, note: Optional[str] = None
) -> Dict[str, Any]:
    """Admin decision. Approval turns the applicant into a verified tutor."""
    try:
        application = db.get(TutorApplication, user_id)
        if not application:
            return fail("Application not found", ErrorCode.NOT_FOUND)
        if application.status != "pending":
            return fail(f"Application is already {application.status}", ErrorCode.CONFLICT)

        application.status = "approved" if approve else "rejected"
        application.review_note = note
        application.reviewed_at = datetime.utcnow()

        user = db.get(User, user_id)
        if approve and user:
            user.role = "tutor"
            user.is_verified = True
            user.subjects = list(application.subjects or [])
            user.hourly_rate = application.hourly_rate or 0.0
            user.phone_number = application.phone_number or ""
            user.gpa = application.gpa
            user.exam_results_url = application.exam_results_url
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error reviewing tutor application %s", user_id)
        return fail("Failed to review application", ErrorCode.STORE)

    decision = application.status
    notification_service.notify(
        db,
        user_id=user_id,
        title=f"Tutor application {decision}",
        message=note or f"Your tutor application has been {decision}.",
        type=f"application_{decision}",
        related_id=user_id,
    )
    return ok(application=serialize_application(application))


def set_user_active(db: Session, user_id: int, is_active: bool) -> Dict[str, Any]:
    """Admin suspend/restore; suspended users cannot sign in."""
    try:
        user = db.get(User, user_id)
        if not user:
            return fail("User not found", ErrorCode.NOT_FOUND)
        if user.is_admin:
            return fail("Admin accounts cannot be suspended", ErrorCode.FORBIDDEN)
        user.is_active = bool(is_active)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error toggling user %s", user_id)
        return fail("Failed to update user", ErrorCode.STORE)
    return ok(user=serialize_user(user))
