from pydantic import BaseModel, Field
from typing import Optional


class IssueCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    session_id: Optional[int] = None


class IssueStatusUpdate(BaseModel):
    status: str
    note: Optional[str] = None
