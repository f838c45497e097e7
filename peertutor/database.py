# peertutor/database.py - Database Configuration
import logging
import random
import time
from typing import Callable, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker
from peertutor.config import settings

logger = logging.getLogger(__name__)

# Database URL loaded from .env via peertutor/config.py
DATABASE_URL = settings.DATABASE_URL

def _create_engine(url: str):
    if str(url).startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


engine = _create_engine(DATABASE_URL)

# Session maker
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()

# Dependency to get database session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Long-lived handlers (WebSockets) open their own short sessions
def get_session_factory():
    return SessionLocal


T = TypeVar("T")


def _retry_delay(attempt: int) -> float:
    base = 0.1 * (2 ** (attempt - 1))
    return base + random.uniform(0, 0.05 * attempt)


def with_db_retry(op_name: str, func: Callable[[], T], *, max_attempts: int = None) -> T:
    """
    Run an idempotent read, retrying transient connection failures with backoff.

    Never wrap writes in this helper: a retried booking write could double-book.
    """
    if max_attempts is None:
        max_attempts = max(1, settings.DB_RETRY_ATTEMPTS)

    attempt = 1
    while True:
        try:
            return func()
        except OperationalError as exc:
            if attempt >= max_attempts:
                raise
            delay = _retry_delay(attempt)
            logger.warning(
                "Transient DB failure in %s (attempt %s/%s), retrying in %.2fs: %s",
                op_name,
                attempt,
                max_attempts,
                delay,
                exc,
            )
            time.sleep(delay)
            attempt += 1
