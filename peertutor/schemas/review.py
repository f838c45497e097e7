from pydantic import BaseModel, Field
from typing import Dict, Optional

# ======================
# REVIEW REQUEST SCHEMAS
# ======================

class ReviewCreate(BaseModel):
    session_id: int
    tutor_id: int
    # Half-star steps are checked by the review service
    rating: float = Field(..., ge=0, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


# ======================
# REVIEW RESPONSE SCHEMAS
# ======================

class ReviewResponse(BaseModel):
    id: int
    session_id: int
    student_id: int
    student_name: Optional[str] = None
    tutor_id: int
    rating: float
    comment: Optional[str] = None
    created_at: Optional[str] = None


class RatingSummary(BaseModel):
    tutor_id: int
    rating: float
    total_reviews: int
    distribution: Dict[str, int]
