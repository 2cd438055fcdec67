from __future__ import annotations
import uuid
from fastapi import APIRouter, Depends
from sqlalchemy import select, exists
from sqlalchemy.ext.asyncio import AsyncSession
from movetogether.auth_deps import get_current_user_id
from movetogether.db import get_session
from movetogether.errors import Forbidden, NotFound
from movetogether.models.competition import Competition, Participant
from movetogether.schemas.competition import StandingRow
from movetogether.services.standings import current_standings

router = APIRouter(prefix="/competitions", tags=["competitions"])

@router.get("/{competition_id}/standings", response_model=list[StandingRow])
async def get_standings(
    competition_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    comp = await session.get(Competition, competition_id)
    if comp is None:
        raise NotFound("Competition not found")
    if not comp.is_public:
        is_participant = await session.scalar(
            select(exists().where(Participant.competition_id == competition_id, Participant.user_id == user_id))
        )
        if not is_participant:
            raise Forbidden("This competition is private")

    return [
        StandingRow(user_id=p.user_id, rank=rank, total_points=p.total_points, is_muted=p.is_muted)
        for p, rank in await current_standings(session, competition_id)
    ]
