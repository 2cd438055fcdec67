from __future__ import annotations
import uuid
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from movetogether.auth_deps import get_current_user_id
from movetogether.config import settings
from movetogether.db import get_session
from movetogether.schemas.moderation import ModerateMessageIn, ModerationResponse
from movetogether.services.moderation import ModerationPipeline
from movetogether.services.rate_limit import CHAT_MODERATION, check_rate_limit
from movetogether.services.toxicity import ToxicityClassifier, get_toxicity_classifier

router = APIRouter(tags=["chat"])

@router.post("/moderate-chat-message", response_model=ModerationResponse, response_model_exclude_none=True)
async def moderate_chat_message(
    body: ModerateMessageIn,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    classifier: ToxicityClassifier = Depends(get_toxicity_classifier),
):
    await check_rate_limit(
        session, user_id, CHAT_MODERATION, settings.chat_rate_limit, settings.chat_rate_window_seconds,
    )
    pipeline = ModerationPipeline(session, classifier)
    decision = await pipeline.moderate(
        author_id=user_id,
        competition_id=body.competition_id,
        content=body.message_content,
        message_id=body.message_id,
    )
    # Gate rejections are 403 but still carry the decision body
    return JSONResponse(status_code=decision.status_code, content=decision.to_response())
