from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from peertutor import models
from peertutor.api.responses import unwrap
from peertutor.database import get_db
from peertutor.schemas.user import HourlyRateUpdate, SubjectResponse
from peertutor.services import tutor_service
from peertutor.utils.security import get_current_tutor

router = APIRouter(tags=["Tutors"])


# ======================
# SUBJECT CATALOGUE
# ======================
@router.get("/subjects", response_model=List[SubjectResponse])
def list_subjects(db: Session = Depends(get_db)):
    return tutor_service.get_all_subjects(db)


# ======================
# BROWSE TUTORS
# ======================
@router.get("/tutors")
def browse_tutors(
    subject: Optional[str] = Query(None, description="Subject id, e.g. computer-science"),
    verified_only: bool = Query(False),
    db: Session = Depends(get_db)
):
    return unwrap(tutor_service.get_all_tutors(db, subject=subject, verified_only=verified_only))["tutors"]


# ======================
# TUTOR'S OWN SUBJECTS AND RATE
# ======================
@router.put("/tutors/me/subjects/{subject_id}")
def add_my_subject(
    subject_id: str,
    tutor: models.User = Depends(get_current_tutor),
    db: Session = Depends(get_db)
):
    return unwrap(tutor_service.add_subject_to_tutor(db, tutor.id, subject_id))


@router.delete("/tutors/me/subjects/{subject_id}")
def remove_my_subject(
    subject_id: str,
    tutor: models.User = Depends(get_current_tutor),
    db: Session = Depends(get_db)
):
    return unwrap(tutor_service.remove_subject_from_tutor(db, tutor.id, subject_id))


@router.put("/tutors/me/hourly-rate")
def update_my_hourly_rate(
    payload: HourlyRateUpdate,
    tutor: models.User = Depends(get_current_tutor),
    db: Session = Depends(get_db)
):
    return unwrap(tutor_service.update_tutor_hourly_rate(db, tutor.id, payload.hourly_rate))
