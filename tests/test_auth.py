"""Sign-up, sign-in, password reset, tokens and form validation."""

from datetime import timedelta

import pytest

from peertutor.models.subject import TutorApplication
from peertutor.models.user import User
from peertutor.services import auth_service
from peertutor.services.auth_service import AuthCode
from peertutor.services.results import ErrorCode
from peertutor.utils import validation
from peertutor.utils.security import (
    ACCESS_TOKEN_PURPOSE,
    RESET_TOKEN_PURPOSE,
    create_access_token,
    decode_token,
)

TUTOR_PROFILE = {
    "role": "tutor",
    "full_name": "Tara Tutor",
    "phone_number": "+94 77 123 4567",
    "subjects": ["mathematics", "physics"],
    "hourly_rate": "30",
    "gpa": "3.8",
    "experience": "Two years of peer tutoring",
}


# ==========================================
# VALIDATION
# ==========================================

@pytest.mark.parametrize("gpa,ok", [(3.5, True), ("4.0", True), (3.49, False), (4.01, False), ("x", False)])
def test_validate_gpa(gpa, ok):
    assert validation.validate_gpa(gpa) is ok


@pytest.mark.parametrize("phone,ok", [
    ("0771234567", True),
    ("+94 (77) 123-4567", True),
    ("12345", False),
    ("1234567890123456", False),
    (None, False),
])
def test_validate_phone_number(phone, ok):
    assert validation.validate_phone_number(phone) is ok


def test_validate_tutor_form_reports_each_field():
    result = validation.validate_tutor_form({
        "email": "bad",
        "password": "123",
        "full_name": " ",
        "gpa": 2.0,
        "subjects": [],
        "hourly_rate": 0,
        "phone_number": "1",
    })

    assert result["is_valid"] is False
    assert set(result["errors"]) == {
        "email", "password", "full_name", "gpa", "subjects", "hourly_rate", "phone_number",
    }


def test_validate_tutor_form_password_is_optional():
    form = {**TUTOR_PROFILE, "email": "t@uni.edu"}
    assert validation.validate_tutor_form(form) == {"is_valid": True, "errors": {}}


# ==========================================
# SIGN UP
# ==========================================

def test_student_sign_up(db_session):
    result = auth_service.sign_up(db_session, " Stu@Uni.EDU ", "secret1", {"full_name": "Stu"})

    assert result["success"] is True
    assert result["user"]["email"] == "stu@uni.edu"
    assert result["user"]["role"] == "student"
    assert "hourly_rate" not in result["user"]


def test_tutor_sign_up_creates_pending_application(db_session):
    result = auth_service.sign_up(db_session, "tara@uni.edu", "secret1", TUTOR_PROFILE)

    assert result["success"] is True
    user = result["user"]
    assert user["is_verified"] is False
    assert user["subjects"] == ["mathematics", "physics"]
    assert (user["rating"], user["total_reviews"]) == (0.0, 0)
    application = db_session.get(TutorApplication, result["uid"])
    assert application.status == "pending"
    assert application.gpa == 3.8


def test_tutor_sign_up_with_invalid_form(db_session):
    result = auth_service.sign_up(db_session, "tara@uni.edu", "secret1", {**TUTOR_PROFILE, "gpa": "3.2"})

    assert result["success"] is False
    assert "gpa" in result["errors"]
    assert db_session.query(User).count() == 0


def test_sign_up_errors(db_session):
    auth_service.sign_up(db_session, "dup@uni.edu", "secret1", {"full_name": "First"})

    assert auth_service.sign_up(db_session, "nope", "secret1", {"full_name": "X"})["auth_code"] == AuthCode.INVALID_EMAIL
    assert auth_service.sign_up(db_session, "x@uni.edu", "123", {"full_name": "X"})["auth_code"] == AuthCode.WEAK_PASSWORD
    duplicate = auth_service.sign_up(db_session, "DUP@uni.edu", "secret1", {"full_name": "Second"})
    assert duplicate["auth_code"] == AuthCode.EMAIL_IN_USE
    assert duplicate["code"] == ErrorCode.CONFLICT
    assert auth_service.sign_up(db_session, "a@uni.edu", "secret1", {"full_name": "A", "role": "admin"})["success"] is False


# ==========================================
# SIGN IN
# ==========================================

def test_sign_in_returns_token_for_user(db_session):
    created = auth_service.sign_up(db_session, "stu@uni.edu", "secret1", {"full_name": "Stu"})

    result = auth_service.sign_in(db_session, "stu@uni.edu", "secret1")

    assert result["success"] is True
    assert result["uid"] == created["uid"]
    payload = decode_token(result["token"], ACCESS_TOKEN_PURPOSE)
    assert payload["sub"] == str(created["uid"])
    assert decode_token(result["token"], RESET_TOKEN_PURPOSE) is None


def test_sign_in_failures(db_session):
    created = auth_service.sign_up(db_session, "stu@uni.edu", "secret1", {"full_name": "Stu"})

    assert auth_service.sign_in(db_session, "ghost@uni.edu", "secret1")["auth_code"] == AuthCode.USER_NOT_FOUND
    assert auth_service.sign_in(db_session, "stu@uni.edu", "wrong!")["auth_code"] == AuthCode.WRONG_PASSWORD

    db_session.get(User, created["uid"]).is_active = False
    db_session.commit()
    assert auth_service.sign_in(db_session, "stu@uni.edu", "secret1")["auth_code"] == AuthCode.USER_DISABLED


def test_expired_token_is_rejected(db_session):
    created = auth_service.sign_up(db_session, "stu@uni.edu", "secret1", {"full_name": "Stu"})
    user = db_session.get(User, created["uid"])

    token = create_access_token(user, expires_delta=timedelta(seconds=-1))

    assert decode_token(token, ACCESS_TOKEN_PURPOSE) is None


# ==========================================
# PASSWORD RESET
# ==========================================

def test_password_reset_token_is_single_use(db_session):
    auth_service.sign_up(db_session, "stu@uni.edu", "secret1", {"full_name": "Stu"})

    sent = auth_service.send_password_reset(db_session, "stu@uni.edu")
    token = sent["reset_token"]

    assert sent["email_sent"] is False
    assert auth_service.reset_password(db_session, token, "newsecret")["success"] is True
    assert auth_service.sign_in(db_session, "stu@uni.edu", "newsecret")["success"] is True

    reused = auth_service.reset_password(db_session, token, "another1")
    assert reused["auth_code"] == AuthCode.INVALID_TOKEN


def test_password_reset_errors(db_session):
    auth_service.sign_up(db_session, "stu@uni.edu", "secret1", {"full_name": "Stu"})
    token = auth_service.send_password_reset(db_session, "stu@uni.edu")["reset_token"]

    assert auth_service.send_password_reset(db_session, "ghost@uni.edu")["auth_code"] == AuthCode.USER_NOT_FOUND
    assert auth_service.reset_password(db_session, "garbage", "newsecret")["auth_code"] == AuthCode.INVALID_TOKEN
    assert auth_service.reset_password(db_session, token, "123")["auth_code"] == AuthCode.WEAK_PASSWORD
