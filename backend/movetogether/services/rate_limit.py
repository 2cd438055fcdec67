from __future__ import annotations
import uuid
from datetime import datetime, timezone as dt_tz
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from movetogether.db import upsert_insert
from movetogether.errors import RateLimited
from movetogether.models.notification import RateLimitWindow
from movetogether.services.clock import as_utc, utcnow

log = structlog.get_logger()

SCORE_SUBMISSION = "calculate_daily_score"
CHAT_MODERATION = "moderate_chat_message"


def window_start(now: datetime, window_seconds: int) -> datetime:
    ts = int(now.timestamp())
    return datetime.fromtimestamp(ts - ts % window_seconds, tz=dt_tz.utc)


async def check_rate_limit(
    session: AsyncSession,
    user_id: UUID,
    action: str,
    limit: int,
    window_seconds: int,
    now: datetime | None = None,
) -> int:
    """
    Fixed-window counter: increment (user, action, window) atomically and raise RateLimited
    once the count passes `limit`. Returns the count for this request.
    """
    now = as_utc(now) if now else utcnow()
    start = window_start(now, window_seconds)
    table = RateLimitWindow.__table__
    stmt = (
        upsert_insert(session, table)
        .values(id=uuid.uuid4(), user_id=user_id, action=action, window_start=start, request_count=1)
        .on_conflict_do_update(
            index_elements=["user_id", "action", "window_start"],
            set_={"request_count": table.c.request_count + 1},
        )
        .returning(table.c.request_count)
    )
    count = (await session.execute(stmt)).scalar_one()
    await session.commit()

    if count > limit:
        retry_after = max(1, int(window_seconds - (now - start).total_seconds()))
        log.warning("rate_limited", action=action, user_id=str(user_id), count=count, limit=limit)
        raise RateLimited(retry_after=retry_after)
    return count
