from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional
from datetime import date


# ======================
# SLOT RECORD
# ======================

class Slot(BaseModel):
    """A 1-hour availability slot as stored inside an availability day."""
    start_time: str
    end_time: str
    is_booked: bool = False
    session_id: Optional[int] = None

    @model_validator(mode="after")
    def check_booking_consistency(self):
        if self.is_booked != (self.session_id is not None):
            raise ValueError("is_booked must be true exactly when session_id is set")
        return self


# ======================
# REQUEST MODELS
# ======================

class AddSlotsRequest(BaseModel):
    date: date
    start_time: str = Field(..., description="HH:00")
    end_time: Optional[str] = Field(None, description="HH:00, defaults to one hour after start_time")


class RemoveSlotRequest(BaseModel):
    date: date
    start_time: str
    end_time: Optional[str] = None


# ======================
# RESPONSE MODELS
# ======================

class AvailabilityDayResponse(BaseModel):
    id: str
    tutor_id: int
    date: str
    slots: List[Slot]

    model_config = ConfigDict(from_attributes=True)


class AvailabilityRangeResponse(BaseModel):
    tutor_id: int
    start_date: str
    end_date: str
    availability: List[AvailabilityDayResponse]
