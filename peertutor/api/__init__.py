# peertutor/api/__init__.py
# This file makes the api directory a Python package.

from . import admin
from . import auth
from . import availability
from . import chat
from . import notification
from . import report
from . import review
from . import session
from . import tutors
from . import users

__all__ = [
    "admin",
    "auth",
    "availability",
    "chat",
    "notification",
    "report",
    "review",
    "session",
    "tutors",
    "users",
]
