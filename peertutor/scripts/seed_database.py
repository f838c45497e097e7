"""
Create the first admin account and the default subject catalogue.

    ADMIN_EMAIL=admin@example.edu ADMIN_PASSWORD=... python -m peertutor.scripts.seed_database

Safe to run repeatedly: existing rows are left alone.
"""

import logging
import os
import re
import sys
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from peertutor import models
from peertutor.database import Base, SessionLocal, engine
from peertutor.services.auth_service import create_user
from peertutor.services.tutor_service import ensure_default_subjects
from peertutor.utils.validation import validate_email

logger = logging.getLogger(__name__)


def _validate_admin_password(password: str) -> None:
    if len(password) < 8:
        raise ValueError("ADMIN_PASSWORD must be at least 8 characters.")
    if len(password.encode("utf-8")) > 72:
        raise ValueError("ADMIN_PASSWORD must be <= 72 bytes (bcrypt limit).")
    if not re.search(r"[A-Z]", password) or not re.search(r"[a-z]", password) or not re.search(r"\d", password):
        raise ValueError("ADMIN_PASSWORD needs an uppercase letter, a lowercase letter and a digit.")


def ensure_admin(db, email: Optional[str], password: Optional[str], full_name: str = "Admin User") -> bool:
    """Create the admin user unless one exists. Returns True when created."""
    if db.query(models.User).filter(models.User.role == "admin").first():
        return False
    if not email or not password:
        raise ValueError("ADMIN_EMAIL and ADMIN_PASSWORD are required to create the first admin.")

    email = email.strip().lower()
    if not validate_email(email):
        raise ValueError("ADMIN_EMAIL is not a valid email format.")
    _validate_admin_password(password)
    if db.query(models.User).filter(models.User.email == email).first():
        raise ValueError("ADMIN_EMAIL is already registered.")

    create_user(db, email=email, password=password, full_name=full_name, role="admin")
    db.commit()
    return True


def seed_database() -> int:
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        if ensure_admin(
            db,
            os.getenv("ADMIN_EMAIL"),
            os.getenv("ADMIN_PASSWORD"),
            os.getenv("ADMIN_NAME", "Admin User"),
        ):
            logger.info("Admin user created")
        created = ensure_default_subjects(db)
        logger.info("%s subject(s) created", created)
        return 0
    except (ValueError, SQLAlchemyError) as exc:
        db.rollback()
        print(f"Database seeding failed: {exc}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(seed_database())
