from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional

# ======================
# TOKEN SCHEMAS
# ======================

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str
    uid: int


# ======================
# SIGN UP / SIGN IN
# ======================

class LoginRequest(BaseModel):
    email: str
    password: str


class SignUpRequest(BaseModel):
    """Student or tutor registration.

    Tutor-only fields are ignored for students. Email and password format
    are checked by the auth service so the auth/* error codes reach the client.
    """
    email: str
    # Bcrypt limit is 72 bytes
    password: str = Field(..., max_length=72)
    full_name: str = Field(..., min_length=1, max_length=100)
    role: str = "student"
    bio: Optional[str] = None

    phone_number: Optional[str] = None
    subjects: List[str] = []
    hourly_rate: Optional[float] = None
    gpa: Optional[float] = None
    experience: Optional[str] = None
    education: Optional[str] = None


# ======================
# PASSWORD RESET
# ======================

class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str = Field(..., max_length=72)
