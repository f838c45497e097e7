from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from peertutor import models
from peertutor.config import settings
from peertutor.database import get_db


# ==========================
# AUTH CONFIG
# ==========================

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto"
)

ACCESS_TOKEN_PURPOSE = "access"
RESET_TOKEN_PURPOSE = "password_reset"


# ==========================
# PASSWORD UTILS
# ==========================

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password[:72], hashed_password)


def get_password_hash(password: str) -> str:
    """
    Bcrypt max input length = 72 bytes
    Truncate safely to avoid crash
    """
    password_bytes = password.encode("utf-8")

    if len(password_bytes) > 72:
        password_bytes = password_bytes[:72]
        password = password_bytes.decode("utf-8", errors="ignore")

    return pwd_context.hash(password)


# ==========================
# JWT TOKENS
# ==========================

def _encode(claims: dict, expires_delta: timedelta) -> str:
    to_encode = claims.copy()
    to_encode.update({"exp": datetime.utcnow() + expires_delta})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(user: "models.User", expires_delta: Optional[timedelta] = None) -> str:
    """Bearer token whose subject is the user id."""
    expires_delta = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(
        {"sub": str(user.id), "role": user.role, "purpose": ACCESS_TOKEN_PURPOSE},
        expires_delta,
    )


def create_password_reset_token(user: "models.User") -> str:
    # Binding the current hash makes the token single-use.
    return _encode(
        {
            "sub": str(user.id),
            "purpose": RESET_TOKEN_PURPOSE,
            "pwd": user.password_hash[-12:],
        },
        timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
    )


def decode_token(token: str, purpose: str) -> Optional[dict]:
    """Return the claims of a valid token issued for ``purpose``, else None."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("purpose") != purpose or not payload.get("sub"):
        return None
    return payload


# ==========================
# AUTH DEPENDENCIES
# ==========================

def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> "models.User":
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(token, ACCESS_TOKEN_PURPOSE)
    if payload is None:
        raise credentials_exception

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise credentials_exception

    user = db.get(models.User, user_id)
    if user is None or not user.is_active:
        raise credentials_exception

    return user


def get_current_tutor(current_user: "models.User" = Depends(get_current_user)) -> "models.User":
    if not current_user.is_tutor:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Tutor access required")
    return current_user


def require_admin(current_user: "models.User" = Depends(get_current_user)) -> "models.User":
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user
