from __future__ import annotations
from pydantic import BaseModel
from uuid import UUID


class StandingRow(BaseModel):
    user_id: UUID
    rank: int
    total_points: float
    is_muted: bool = False
