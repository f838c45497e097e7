from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class TypingUpdate(BaseModel):
    is_typing: bool
