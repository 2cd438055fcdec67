from __future__ import annotations
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime


class ModerateMessageIn(BaseModel):
    competition_id: UUID
    message_content: str = Field(min_length=1, max_length=2000)
    message_id: UUID | None = None


class ModerationResponse(BaseModel):
    allowed: bool
    blocked: bool | None = None
    reason: str | None = None
    muted_until: datetime | None = None
    warnings_remaining: int | None = None
    flagged: bool | None = None
    score: float | None = None
