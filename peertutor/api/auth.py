from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from peertutor.api.responses import unwrap
from peertutor.database import get_db
from peertutor.schemas.auth import (
    LoginRequest,
    PasswordResetConfirm,
    PasswordResetRequest,
    SignUpRequest,
    Token,
)
from peertutor.services import auth_service

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ===== REGISTER ENDPOINT =====

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(user_data: SignUpRequest, db: Session = Depends(get_db)):
    """Register a student, or a tutor with a pending application."""
    profile = user_data.model_dump(exclude={"email", "password"})
    result = unwrap(auth_service.sign_up(db, user_data.email, user_data.password, profile))
    return {"uid": result["uid"], "user": result["user"]}


# ===== LOGIN ENDPOINT =====

@router.post("/login", response_model=Token)
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    result = auth_service.sign_in(db, credentials.email, credentials.password)
    if not result["success"]:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": result["error"], "auth_code": result.get("auth_code")},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Token(
        access_token=result["token"],
        token_type="bearer",
        role=result["user"]["role"],
        uid=result["uid"],
    )


# ===== PASSWORD RESET =====

@router.post("/password-reset")
def request_password_reset(payload: PasswordResetRequest, db: Session = Depends(get_db)):
    """Send a reset link by e-mail. The token itself never appears in the response."""
    result = unwrap(auth_service.send_password_reset(db, payload.email))
    return {"message": "Password reset email sent", "email_sent": result["email_sent"]}


@router.post("/password-reset/confirm")
def confirm_password_reset(payload: PasswordResetConfirm, db: Session = Depends(get_db)):
    unwrap(auth_service.reset_password(db, payload.token, payload.new_password))
    return {"message": "Password has been reset"}
