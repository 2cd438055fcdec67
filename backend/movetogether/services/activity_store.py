from __future__ import annotations
from uuid import UUID
from datetime import date
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from movetogether.db import upsert_insert
from movetogether.models.activity import ActivityRecord
from movetogether.schemas.activity import ActivitySubmission, CalculatedScore
from movetogether.services.clock import utcnow


async def upsert_activity(
    session: AsyncSession,
    user_id: UUID,
    day: date,
    submission: ActivitySubmission,
    score: CalculatedScore,
) -> ActivityRecord:
    """
    Idempotent write of the (user_id, day) record via ON CONFLICT DO UPDATE.
    Concurrent writers for the same key serialize on the unique index; last write wins.
    `rings_closed_notified` is never part of the update set, so re-syncs cannot re-arm it.
    """
    values = {
        "move_calories": submission.move_calories,
        "exercise_minutes": submission.exercise_minutes,
        "stand_hours": submission.stand_hours,
        "steps": submission.steps,
        "distance_meters": submission.distance_meters,
        "workouts_completed": submission.workouts_completed,
        "move_percentage": score.move_percentage,
        "exercise_percentage": score.exercise_percentage,
        "stand_percentage": score.stand_percentage,
        "total_score": score.total_score,
        "rings_closed": score.rings_closed,
        "calculated_at": utcnow(),
    }
    stmt = upsert_insert(session, ActivityRecord.__table__).values(
        user_id=user_id, date=day, rings_closed_notified=False, **values
    )
    stmt = stmt.on_conflict_do_update(index_elements=["user_id", "date"], set_=values)
    await session.execute(stmt)

    # Core statement bypasses the identity map; re-read the row fresh
    return await session.scalar(
        select(ActivityRecord)
        .where(ActivityRecord.user_id == user_id, ActivityRecord.date == day)
        .execution_options(populate_existing=True)
    )


async def get_activity(session: AsyncSession, user_id: UUID, day: date) -> ActivityRecord | None:
    return await session.scalar(
        select(ActivityRecord).where(ActivityRecord.user_id == user_id, ActivityRecord.date == day)
    )
