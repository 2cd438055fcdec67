from __future__ import annotations
from datetime import date
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from movetogether.errors import Forbidden, NotFound, UpstreamFailure
from movetogether.models.user import Profile
from movetogether.schemas.activity import ActivitySubmission, CalculatedScore
from movetogether.services import scorer, validator
from movetogether.services.activity_store import upsert_activity
from movetogether.services.notifications import NotificationDispatcher
from movetogether.services.standings import RankChangeSet, reconcile

log = structlog.get_logger()


async def load_goals(session: AsyncSession, user_id: UUID) -> scorer.Goals:
    row = (await session.execute(
        select(Profile.move_goal, Profile.exercise_goal, Profile.stand_goal).where(Profile.user_id == user_id)
    )).first()
    if row is None:
        raise NotFound("Profile not found")
    return scorer.Goals.from_profile(*row)


async def submit_daily_score(
    session: AsyncSession,
    user_id: UUID,
    submission: ActivitySubmission,
    dispatcher: NotificationDispatcher,
    today: date | None = None,
) -> CalculatedScore:
    """
    validate -> goals -> score -> persist -> reconcile -> notify.
    Everything after the persist step is best effort and cannot change the returned score.
    """
    if submission.user_id != user_id:
        log.warning("score_submission_cross_user", submitted_for=str(submission.user_id))
        raise Forbidden("Cannot submit activity for another user")

    validator.validate(submission, today=today)
    goals = await load_goals(session, user_id)
    result = scorer.score(submission, goals)

    try:
        record = await upsert_activity(session, user_id, submission.date, submission, result)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        log.error("activity_upsert_failed", date=submission.date.isoformat(), error=str(e))
        raise UpstreamFailure("Failed to save activity data") from e

    log.info(
        "daily_score_calculated",
        date=submission.date.isoformat(), total_score=result.total_score, rings_closed=result.rings_closed,
    )

    changes = RankChangeSet()
    try:
        changes = await reconcile(session, user_id, submission.date, record, goals)
    except Exception as e:
        await session.rollback()
        log.error("standings_update_failed", date=submission.date.isoformat(), error=str(e), exc_info=True)

    await dispatcher.dispatch_rings_closed(user_id, submission.date)
    await dispatcher.dispatch_progress_nudges(user_id, submission.date)
    for ev in changes.overtakes:
        await dispatcher.dispatch_rank_overtake(
            passed_user_id=ev.passed_user_id,
            passer_user_id=ev.passer_user_id,
            competition_id=ev.competition_id,
            new_rank=ev.new_rank,
            previous_rank=ev.previous_rank,
        )
    return result
