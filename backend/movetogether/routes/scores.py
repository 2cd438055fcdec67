from __future__ import annotations
import uuid
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from movetogether.auth_deps import get_current_user_id
from movetogether.config import settings
from movetogether.db import get_session
from movetogether.schemas.activity import ActivitySubmission, ScoreResponse
from movetogether.services.daily_score import submit_daily_score
from movetogether.services.notifications import NotificationDispatcher, PushSender, get_push_sender
from movetogether.services.rate_limit import SCORE_SUBMISSION, check_rate_limit

router = APIRouter(tags=["scores"])

@router.post("/calculate-daily-score", response_model=ScoreResponse, response_model_by_alias=True)
async def calculate_daily_score(
    body: ActivitySubmission,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    sender: PushSender = Depends(get_push_sender),
):
    await check_rate_limit(
        session, user_id, SCORE_SUBMISSION, settings.score_rate_limit, settings.score_rate_window_seconds,
    )
    dispatcher = NotificationDispatcher(session, sender)
    result = await submit_daily_score(session, user_id, body, dispatcher)
    return ScoreResponse(success=True, score=result)
