from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from peertutor import models
from peertutor.api.responses import unwrap
from peertutor.database import get_db
from peertutor.schemas.availability import AddSlotsRequest, AvailabilityRangeResponse, RemoveSlotRequest
from peertutor.services import availability_service
from peertutor.utils.security import get_current_tutor

router = APIRouter(prefix="/availability", tags=["Availability"])


@router.post("/", status_code=status.HTTP_201_CREATED)
def add_availability(
    payload: AddSlotsRequest,
    tutor: models.User = Depends(get_current_tutor),
    db: Session = Depends(get_db)
):
    """Publish 1-hour slots for [start_time, end_time) on a date."""
    return unwrap(availability_service.add_slots(
        db, tutor.id, payload.date, payload.start_time, payload.end_time
    ))


@router.post("/remove")
def remove_availability(
    payload: RemoveSlotRequest,
    tutor: models.User = Depends(get_current_tutor),
    db: Session = Depends(get_db)
):
    return unwrap(availability_service.remove_slot(
        db, tutor.id, payload.date, payload.start_time, payload.end_time
    ))


@router.get("/{tutor_id}", response_model=AvailabilityRangeResponse)
def get_tutor_availability(
    tutor_id: int,
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db)
):
    result = unwrap(availability_service.query_range(db, tutor_id, start_date, end_date))
    return {
        "tutor_id": tutor_id,
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "availability": result["availability"],
    }
