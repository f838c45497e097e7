# peertutor/models/__init__.py
# Import models in dependency order
from .user import User
from .subject import Subject, TutorApplication
from .session import TutoringSession
from .availability import AvailabilityDay
from .review import Review
from .chat import Chat, ChatMessage
from .notification import Notification
from .report import ReportedIssue

__all__ = [
    "User",
    "Subject",
    "TutorApplication",
    "TutoringSession",
    "AvailabilityDay",
    "Review",
    "Chat",
    "ChatMessage",
    "Notification",
    "ReportedIssue",
]
