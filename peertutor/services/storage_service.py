# peertutor/services/storage_service.py
"""
Blob storage for user uploads.

Files live under UPLOAD_DIR and are served from PUBLIC_BASE_URL (the app
mounts the directory as static files at ``/uploads``).
"""

import logging
import time
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from peertutor.config import settings
from peertutor.models.subject import TutorApplication
from peertutor.models.user import User
from peertutor.services.results import ErrorCode, fail, ok

logger = logging.getLogger(__name__)

IMAGE_TYPES = {"image/jpeg": ".jpg", "image/png": ".png", "image/webp": ".webp"}
PDF_TYPE = "application/pdf"


class StorageError(Exception):
    pass


class LocalBlobStore:
    def __init__(self, root: str, base_url: str, max_bytes: int):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.max_bytes = max_bytes

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise StorageError(f"Invalid storage path: {path!r}")
        return self.root.joinpath(*relative.parts)

    def upload(self, path: str, data: bytes) -> str:
        """Write ``data`` at ``path`` and return its public URL."""
        if not data:
            raise StorageError("Empty upload")
        if len(data) > self.max_bytes:
            raise StorageError(f"File is larger than {self.max_bytes // (1024 * 1024)} MB")

        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info("Stored %s bytes at %s", len(data), path)
        return f"{self.base_url}/{PurePosixPath(path)}"

    def delete(self, path: str) -> bool:
        target = self._resolve(path)
        if target.exists():
            target.unlink()
            return True
        return False


def get_blob_store() -> LocalBlobStore:
    return LocalBlobStore(settings.UPLOAD_DIR, settings.PUBLIC_BASE_URL, settings.MAX_UPLOAD_BYTES)


def _timestamp() -> int:
    return int(time.time() * 1000)


# ======================
# PROFILE PICTURES
# ======================

def update_profile_picture(
    db: Session,
    user_id: int,
    data: bytes,
    content_type: Optional[str],
    store: Optional[LocalBlobStore] = None,
) -> Dict[str, Any]:
    extension = IMAGE_TYPES.get((content_type or "").lower())
    if extension is None:
        return fail("Profile picture must be a JPEG, PNG or WebP image")

    store = store or get_blob_store()
    user = db.get(User, user_id)
    if not user:
        return fail("User not found", ErrorCode.NOT_FOUND)

    path = f"profile_pictures/{user_id}/profile_{user_id}_{_timestamp()}{extension}"
    try:
        url = store.upload(path, data)
    except StorageError as exc:
        return fail(str(exc))
    except OSError as exc:
        logger.warning("Profile picture upload failed for user %s: %s", user_id, exc)
        return fail("Failed to upload profile picture", ErrorCode.STORE)

    try:
        user.photo_url = url
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error saving photo url for user %s", user_id)
        return fail("Failed to update profile picture", ErrorCode.STORE)
    return ok(url=url)


# ======================
# EXAM RESULTS
# ======================

def upload_exam_results(
    db: Session,
    user_id: int,
    data: bytes,
    content_type: Optional[str],
    store: Optional[LocalBlobStore] = None,
) -> Dict[str, Any]:
    """Attach a PDF transcript to the user (and their tutor application, if any)."""
    if (content_type or "").lower() != PDF_TYPE or not data.startswith(b"%PDF"):
        return fail("Exam results must be a PDF file")

    store = store or get_blob_store()
    user = db.get(User, user_id)
    if not user:
        return fail("User not found", ErrorCode.NOT_FOUND)

    path = f"exam_results/{user_id}/exam_results_{_timestamp()}.pdf"
    try:
        url = store.upload(path, data)
    except StorageError as exc:
        return fail(str(exc))
    except OSError as exc:
        logger.warning("Exam results upload failed for user %s: %s", user_id, exc)
        return fail("Failed to upload exam results", ErrorCode.STORE)

    try:
        user.exam_results_url = url
        application = db.get(TutorApplication, user_id)
        if application:
            application.exam_results_url = url
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error saving exam results url for user %s", user_id)
        return fail("Failed to save exam results", ErrorCode.STORE)
    return ok(url=url)
