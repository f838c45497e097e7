# peertutor/schemas/__init__.py

# Auth schemas
from .auth import Token, LoginRequest, SignUpRequest, PasswordResetRequest, PasswordResetConfirm

# User / tutor schemas
from .user import (
    ProfileUpdate,
    UserResponse,
    UserStatusUpdate,
    SubjectResponse,
    HourlyRateUpdate,
    TutorApplicationRequest,
    ApplicationDecision,
)

# Scheduling schemas
from .availability import Slot, AddSlotsRequest, RemoveSlotRequest
from .session import BookSessionRequest, RescheduleRequest, SessionResponse
from .review import ReviewCreate, ReviewResponse, RatingSummary
from .chat import MessageCreate, TypingUpdate
from .issue import IssueCreate, IssueStatusUpdate

__all__ = [
    "Token",
    "LoginRequest",
    "SignUpRequest",
    "PasswordResetRequest",
    "PasswordResetConfirm",
    "ProfileUpdate",
    "UserResponse",
    "UserStatusUpdate",
    "SubjectResponse",
    "HourlyRateUpdate",
    "TutorApplicationRequest",
    "ApplicationDecision",
    "Slot",
    "AddSlotsRequest",
    "RemoveSlotRequest",
    "BookSessionRequest",
    "RescheduleRequest",
    "SessionResponse",
    "ReviewCreate",
    "ReviewResponse",
    "RatingSummary",
    "MessageCreate",
    "TypingUpdate",
    "IssueCreate",
    "IssueStatusUpdate",
]
