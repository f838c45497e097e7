# peertutor/api/review.py
"""
Review & Rating API Router

Endpoints:
- POST /reviews/ - Submit a review for a completed session
- GET /reviews/session/{session_id} - Review for a session
- GET /reviews/tutor/{tutor_id} - Reviews for a tutor (public)
- GET /reviews/rating/{tutor_id} - Tutor rating summary (public)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from peertutor.api.responses import unwrap
from peertutor.database import get_db
from peertutor.models.user import User
from peertutor.schemas.review import RatingSummary, ReviewCreate, ReviewResponse
from peertutor.services import review_service
from peertutor.utils.security import get_current_user

router = APIRouter(prefix="/reviews", tags=["reviews"])


# ======================
# SUBMIT REVIEW
# ======================
@router.post("/", status_code=status.HTTP_201_CREATED)
def submit_review(
    review: ReviewCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Submit a review for a completed session.

    Only the session's student can review, once per session, with a rating
    from 0 to 5 in half-star steps.
    """
    return unwrap(review_service.submit_review(
        db,
        session_id=review.session_id,
        student_id=current_user.id,
        tutor_id=review.tutor_id,
        rating=review.rating,
        comment=review.comment,
    ))


# ======================
# GET REVIEW BY SESSION
# ======================
@router.get("/session/{session_id}", response_model=Optional[ReviewResponse])
def get_session_review(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    review = review_service.get_session_review(db, session_id)
    if not review:
        return None
    if current_user.id not in (review.student_id, review.tutor_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view this review"
        )
    return review_service.serialize_review(review)


# ======================
# GET TUTOR REVIEWS
# ======================
@router.get("/tutor/{tutor_id}", response_model=List[ReviewResponse])
def get_tutor_reviews(
    tutor_id: int,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    return unwrap(review_service.get_tutor_reviews(db, tutor_id, limit=limit, offset=offset))["reviews"]


# ======================
# RATING SUMMARY
# ======================
@router.get("/rating/{tutor_id}", response_model=RatingSummary)
def get_rating_summary(tutor_id: int, db: Session = Depends(get_db)):
    return unwrap(review_service.get_rating_summary(db, tutor_id))
