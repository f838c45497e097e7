# peertutor/services/auth_service.py
"""
Account sign-up, sign-in and password reset.

Failures carry a provider-style ``auth_code`` (``auth/user-not-found``,
``auth/email-already-in-use`` ...) next to the usual result ``code`` so
clients can show the exact reason.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from peertutor.models.subject import TutorApplication
from peertutor.models.user import User
from peertutor.services.results import ErrorCode, fail, ok
from peertutor.utils import validation
from peertutor.utils.email import send_password_reset_email
from peertutor.utils.security import (
    RESET_TOKEN_PURPOSE,
    create_access_token,
    create_password_reset_token,
    decode_token,
    get_password_hash,
    verify_password,
)

logger = logging.getLogger(__name__)


class AuthCode:
    INVALID_EMAIL = "auth/invalid-email"
    WEAK_PASSWORD = "auth/weak-password"
    EMAIL_IN_USE = "auth/email-already-in-use"
    USER_NOT_FOUND = "auth/user-not-found"
    WRONG_PASSWORD = "auth/wrong-password"
    USER_DISABLED = "auth/user-disabled"
    INVALID_TOKEN = "auth/invalid-token"


SIGNUP_ROLES = ("student", "tutor")


def _auth_fail(message: str, auth_code: str, code: str = ErrorCode.VALIDATION, **data: Any) -> Dict[str, Any]:
    return fail(message, code, auth_code=auth_code, **data)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def serialize_user(user: User) -> Dict[str, Any]:
    data = {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "photo_url": user.photo_url,
        "bio": user.bio or "",
        "is_active": user.is_active,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }
    if user.is_tutor:
        data.update(
            phone_number=user.phone_number or "",
            subjects=list(user.subjects or []),
            hourly_rate=user.hourly_rate or 0.0,
            is_verified=bool(user.is_verified),
            rating=user.rating or 0.0,
            total_reviews=user.total_reviews or 0,
        )
    return data


# ======================
# SIGN UP
# ======================

def create_user(db: Session, *, email: str, password: str, full_name: str, role: str, **fields: Any) -> User:
    """Insert a user row. Raises IntegrityError if the email is taken."""
    user = User(
        email=normalize_email(email),
        password_hash=get_password_hash(password),
        full_name=full_name.strip(),
        role=role,
        is_active=True,
        rating=0.0,
        total_reviews=0,
        **fields,
    )
    db.add(user)
    db.flush()
    return user


def sign_up(db: Session, email: str, password: str, profile: Dict[str, Any]) -> Dict[str, Any]:
    """
    Register a student or tutor.

    Tutors start unverified with a pending tutor application and an empty
    rating aggregate.
    """
    email = normalize_email(email)
    role = (profile.get("role") or "student").strip().lower()
    full_name = (profile.get("full_name") or "").strip()

    if not validation.validate_email(email):
        return _auth_fail("The email address is badly formatted.", AuthCode.INVALID_EMAIL)
    if not validation.validate_password(password):
        return _auth_fail(
            f"Password should be at least {validation.MIN_PASSWORD_LENGTH} characters.",
            AuthCode.WEAK_PASSWORD,
        )
    if role not in SIGNUP_ROLES:
        return fail(f"Role must be one of: {', '.join(SIGNUP_ROLES)}")
    if not full_name:
        return fail("Full name is required")

    tutor_fields: Dict[str, Any] = {}
    if role == "tutor":
        check = validation.validate_tutor_form({**profile, "email": email, "full_name": full_name})
        if not check["is_valid"]:
            return fail("Please correct the highlighted fields", errors=check["errors"])
        tutor_fields = {
            "phone_number": profile.get("phone_number") or "",
            "subjects": list(profile["subjects"]),
            "hourly_rate": float(profile["hourly_rate"]),
            "gpa": float(profile["gpa"]),
            "is_verified": False,
        }

    try:
        if db.query(User.id).filter(User.email == email).first():
            return _auth_fail(
                "The email address is already in use by another account.",
                AuthCode.EMAIL_IN_USE,
                ErrorCode.CONFLICT,
            )

        user = create_user(
            db,
            email=email,
            password=password,
            full_name=full_name,
            role=role,
            bio=profile.get("bio") or "",
            **tutor_fields,
        )
        if role == "tutor":
            db.add(TutorApplication(
                user_id=user.id,
                full_name=full_name,
                email=email,
                phone_number=tutor_fields["phone_number"],
                status="pending",
                subjects=tutor_fields["subjects"],
                experience=profile.get("experience") or "",
                education=profile.get("education") or "",
                gpa=tutor_fields["gpa"],
                hourly_rate=tutor_fields["hourly_rate"],
            ))
        db.commit()
    except IntegrityError:
        db.rollback()
        return _auth_fail(
            "The email address is already in use by another account.",
            AuthCode.EMAIL_IN_USE,
            ErrorCode.CONFLICT,
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error registering %s", email)
        return fail("Registration failed", ErrorCode.STORE)

    logger.info("Registered %s user %s", role, user.id)
    return ok(uid=user.id, user=serialize_user(user))


# ======================
# SIGN IN
# ======================

def sign_in(db: Session, email: str, password: str) -> Dict[str, Any]:
    email = normalize_email(email)
    if not validation.validate_email(email):
        return _auth_fail("The email address is badly formatted.", AuthCode.INVALID_EMAIL)

    user = db.query(User).filter(User.email == email).first()
    if not user:
        return _auth_fail(
            "There is no user record corresponding to this identifier.",
            AuthCode.USER_NOT_FOUND,
            ErrorCode.NOT_FOUND,
        )
    if not verify_password(password or "", user.password_hash):
        return _auth_fail("The password is invalid.", AuthCode.WRONG_PASSWORD, ErrorCode.FORBIDDEN)
    if not user.is_active:
        return _auth_fail("This account has been disabled.", AuthCode.USER_DISABLED, ErrorCode.FORBIDDEN)

    return ok(
        uid=user.id,
        token=create_access_token(user),
        token_type="bearer",
        user=serialize_user(user),
    )


# ======================
# PASSWORD RESET
# ======================

def send_password_reset(db: Session, email: str) -> Dict[str, Any]:
    """E-mail a single-use reset token. The token is returned to in-process callers only."""
    email = normalize_email(email)
    if not validation.validate_email(email):
        return _auth_fail("The email address is badly formatted.", AuthCode.INVALID_EMAIL)

    user = db.query(User).filter(User.email == email).first()
    if not user:
        return _auth_fail(
            "There is no user record corresponding to this identifier.",
            AuthCode.USER_NOT_FOUND,
            ErrorCode.NOT_FOUND,
        )

    token = create_password_reset_token(user)
    sent = send_password_reset_email(to_email=user.email, full_name=user.full_name, token=token)
    if not sent:
        logger.warning("Password reset email for user %s was not delivered", user.id)
    return ok(email_sent=sent, reset_token=token)


def reset_password(db: Session, token: str, new_password: str) -> Dict[str, Any]:
    invalid = _auth_fail("The reset link is invalid or has expired.", AuthCode.INVALID_TOKEN)

    payload = decode_token(token or "", RESET_TOKEN_PURPOSE)
    if payload is None:
        return invalid
    if not validation.validate_password(new_password):
        return _auth_fail(
            f"Password should be at least {validation.MIN_PASSWORD_LENGTH} characters.",
            AuthCode.WEAK_PASSWORD,
        )

    try:
        user = db.get(User, int(payload["sub"]))
        if not user or user.password_hash[-12:] != payload.get("pwd"):
            return invalid
        user.password_hash = get_password_hash(new_password)
        db.commit()
    except (TypeError, ValueError):
        return invalid
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error resetting password")
        return fail("Password reset failed", ErrorCode.STORE)

    logger.info("Password reset for user %s", user.id)
    return ok(message="Password has been reset")
