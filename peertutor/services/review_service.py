# peertutor/services/review_service.py
"""
Review Service Layer
Review submission and the tutor rating aggregate.

A tutor's ``rating`` is the running mean of every review score and
``total_reviews`` the number of reviews. Both are written by one SQL UPDATE
in the same transaction as the review insert, so concurrent reviews for the
same tutor cannot lose an update.
"""

import logging
from collections import Counter
from typing import Any, Dict, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from peertutor.models.review import Review
from peertutor.models.session import TutoringSession
from peertutor.models.user import User
from peertutor.services import notification_service
from peertutor.services.results import ErrorCode, fail, ok

logger = logging.getLogger(__name__)

ALREADY_REVIEWED = "You have already reviewed this session."
MAX_COMMENT_LENGTH = 1000


def validate_rating(rating: Any) -> Optional[float]:
    """Return the rating as a float if it is 0-5 in half-star steps."""
    try:
        value = float(rating)
    except (TypeError, ValueError):
        return None
    if not 0 <= value <= 5:
        return None
    if (value * 2) != int(value * 2):
        return None
    return value


def serialize_review(review: Review) -> Dict[str, Any]:
    return {
        "id": review.id,
        "session_id": review.session_id,
        "student_id": review.student_id,
        "student_name": review.student.full_name if review.student else None,
        "tutor_id": review.tutor_id,
        "rating": review.rating,
        "comment": review.comment,
        "created_at": review.created_at.isoformat() if review.created_at else None,
    }


# ======================
# REVIEW SUBMISSION
# ======================

def submit_review(
    db: Session,
    session_id: int,
    student_id: int,
    tutor_id: int,
    rating: Any,
    comment: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Submit a review for a completed session and fold it into the tutor's mean.

    Only the session's student may review, once per session.
    """
    score = validate_rating(rating)
    if score is None:
        return fail("Rating must be between 0 and 5 in steps of 0.5")
    comment = (comment or "").strip()
    if len(comment) > MAX_COMMENT_LENGTH:
        return fail(f"Comment must be {MAX_COMMENT_LENGTH} characters or less")

    try:
        session = db.get(TutoringSession, session_id)
        if not session:
            return fail("Session not found.", ErrorCode.NOT_FOUND)
        if session.student_id != student_id:
            return fail("You can only review sessions you booked.", ErrorCode.FORBIDDEN)
        if session.tutor_id != tutor_id:
            return fail("Tutor does not match this session.")
        if session.status != "completed":
            return fail("You can only review completed sessions.", ErrorCode.CONFLICT)

        existing = db.query(Review).filter(
            Review.session_id == session_id,
            Review.student_id == student_id,
        ).first()
        if existing:
            return fail(ALREADY_REVIEWED, ErrorCode.CONFLICT)

        review = Review(
            session_id=session_id,
            student_id=student_id,
            tutor_id=tutor_id,
            rating=score,
            comment=comment or None,
        )
        db.add(review)
        db.flush()

        db.execute(
            update(User)
            .where(User.id == tutor_id)
            .values(
                rating=(User.rating * User.total_reviews + score) / (User.total_reviews + 1),
                total_reviews=User.total_reviews + 1,
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Duplicate review for session %s by student %s", session_id, student_id)
        return fail(ALREADY_REVIEWED, ErrorCode.CONFLICT)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error submitting review for session %s", session_id)
        return fail("Failed to submit review", ErrorCode.STORE)

    tutor = db.get(User, tutor_id)
    logger.info("Review %s submitted for tutor %s (%.1f)", review.id, tutor_id, score)
    notification_service.notify(
        db,
        user_id=tutor_id,
        title="New review",
        message=f"You received a {score:g}-star review.",
        type="review_received",
        related_id=session_id,
    )

    return ok(
        review_id=review.id,
        new_rating=tutor.rating if tutor else None,
        total_reviews=tutor.total_reviews if tutor else None,
        message="Review submitted successfully",
    )


# ======================
# READS
# ======================

def get_tutor_reviews(db: Session, tutor_id: int, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
    try:
        reviews = (
            db.query(Review)
            .filter(Review.tutor_id == tutor_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
    except SQLAlchemyError:
        logger.exception("Error loading reviews for tutor %s", tutor_id)
        return fail("Failed to load reviews", ErrorCode.STORE)
    return ok(reviews=[serialize_review(r) for r in reviews])


def get_session_review(db: Session, session_id: int) -> Optional[Review]:
    return db.query(Review).filter(Review.session_id == session_id).first()


def get_rating_summary(db: Session, tutor_id: int) -> Dict[str, Any]:
    """Stored aggregate plus the half-star distribution of the tutor's reviews."""
    try:
        tutor = db.get(User, tutor_id)
        if not tutor:
            return fail("Tutor not found.", ErrorCode.NOT_FOUND)
        scores = [row[0] for row in db.query(Review.rating).filter(Review.tutor_id == tutor_id).all()]
    except SQLAlchemyError:
        logger.exception("Error loading rating summary for tutor %s", tutor_id)
        return fail("Failed to load rating summary", ErrorCode.STORE)

    counts = Counter(scores)
    distribution = {f"{step / 2:.1f}": counts.get(step / 2, 0) for step in range(0, 11)}

    return ok(
        tutor_id=tutor_id,
        rating=round(tutor.rating or 0.0, 2),
        total_reviews=tutor.total_reviews or 0,
        distribution=distribution,
    )


# ======================
# MAINTENANCE
# ======================

def recalculate_tutor_rating(db: Session, tutor_id: int) -> Dict[str, Any]:
    """Recompute the aggregate from stored reviews (admin repair tool)."""
    try:
        tutor = db.get(User, tutor_id)
        if not tutor:
            return fail("Tutor not found.", ErrorCode.NOT_FOUND)

        mean, count = db.query(func.avg(Review.rating), func.count(Review.id)).filter(
            Review.tutor_id == tutor_id
        ).one()
        tutor.rating = float(mean or 0.0)
        tutor.total_reviews = int(count or 0)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error recalculating rating for tutor %s", tutor_id)
        return fail("Failed to recalculate rating", ErrorCode.STORE)

    logger.info("Recalculated rating for tutor %s: %.2f over %s reviews", tutor_id, tutor.rating, tutor.total_reviews)
    return ok(tutor_id=tutor_id, rating=tutor.rating, total_reviews=tutor.total_reviews)
