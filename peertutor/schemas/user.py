from pydantic import BaseModel, Field
from typing import List, Optional


# ======================
# PROFILE
# ======================

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=1000)
    phone_number: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: str
    role: str
    photo_url: Optional[str] = None
    bio: str = ""
    is_active: bool = True
    created_at: Optional[str] = None

    # Present for tutors only
    phone_number: Optional[str] = None
    subjects: Optional[List[str]] = None
    hourly_rate: Optional[float] = None
    is_verified: Optional[bool] = None
    rating: Optional[float] = None
    total_reviews: Optional[int] = None


class UserStatusUpdate(BaseModel):
    is_active: bool


# ======================
# TUTOR PROFILE
# ======================

class SubjectResponse(BaseModel):
    id: str
    name: str
    description: str = ""


class HourlyRateUpdate(BaseModel):
    hourly_rate: float = Field(..., gt=0)


class TutorApplicationRequest(BaseModel):
    phone_number: str
    subjects: List[str]
    hourly_rate: float
    gpa: float
    experience: Optional[str] = None
    education: Optional[str] = None


class ApplicationDecision(BaseModel):
    approve: bool
    note: Optional[str] = None
