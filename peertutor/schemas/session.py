from pydantic import BaseModel, Field
from typing import Optional
from datetime import date

# ======================
# SESSION REQUEST MODELS
# ======================

class BookSessionRequest(BaseModel):
    tutor_id: int
    date: date
    start_time: str = Field(..., description="HH:00")
    end_time: str = Field(..., description="HH:00")
    subject: str = Field(..., min_length=1)


class RescheduleRequest(BaseModel):
    date: date
    start_time: str
    end_time: str


# ======================
# SESSION RESPONSE MODELS
# ======================

class SessionResponse(BaseModel):
    id: int
    tutor_id: int
    student_id: int
    subject: str
    date: str
    start_time: str
    end_time: str
    hours: int
    hourly_rate: float
    total_amount: float
    status: str
    payment_status: str
    payment_id: Optional[str] = None
    tutor_name: str = ""
    student_name: str = ""
    tutor_phone_number: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
