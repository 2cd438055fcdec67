from __future__ import annotations
import math
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Protocol
from uuid import UUID

import structlog
from redis import Redis
from rq import Queue
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from movetogether.config import settings
from movetogether.db import upsert_insert
from movetogether.models.activity import ActivityRecord
from movetogether.models.competition import Competition, Participant
from movetogether.models.notification import NotificationReceipt
from movetogether.models.user import Profile
from movetogether.services.clock import utcnow
from movetogether.services.scorer import Goals

log = structlog.get_logger()

RING_LABELS = {"move": "Move", "exercise": "Exercise", "stand": "Stand"}

# Fraction of goal at which a not-yet-closed ring earns a nudge
NUDGE_THRESHOLD = 0.80


@dataclass
class PushMessage:
    recipient_ids: list[str]
    title: str
    body: str
    data: dict = field(default_factory=dict)


class PushSender(Protocol):
    def send(self, message: PushMessage) -> None: ...


class QueuedPushSender:
    """Hands delivery to an RQ worker; the request path only pays for the enqueue."""

    def __init__(self, queue: Queue | None = None):
        self._queue = queue

    @property
    def queue(self) -> Queue:
        if self._queue is None:
            self._queue = Queue(settings.notifications_queue, connection=Redis.from_url(settings.redis_url))
        return self._queue

    def send(self, message: PushMessage) -> None:
        from movetogether.jobs.deliver_push import deliver_push
        self.queue.enqueue(deliver_push, asdict(message))


def _ring_progress(record: ActivityRecord, goals: Goals) -> dict[str, tuple[float, float]]:
    """ring -> (raw, goal). Closure is judged on raw values; stored percentages are rounded."""
    return {
        "move": (record.move_calories, goals.move),
        "exercise": (record.exercise_minutes, goals.exercise),
        "stand": (record.stand_hours, goals.stand),
    }


def _ring_types(record: ActivityRecord, goals: Goals) -> list[str]:
    closed = [ring for ring, (raw, goal) in _ring_progress(record, goals).items() if raw >= goal]
    if len(closed) == 3:
        closed.append("all")
    return closed


def _nudge_text(ring: str, raw: float, goal: float) -> tuple[str, str]:
    remaining = math.ceil(goal - raw)
    if ring == "move":
        return "Almost there!", f"Just {remaining} calories to close your Move ring! You're at {round(raw / goal * 100)}%."
    if ring == "exercise":
        return "So close!", f"Only {remaining} minutes to close your Exercise ring! Keep moving!"
    return "One more push!", f"Just {remaining} more stand hour{'s' if remaining != 1 else ''} to close your Stand ring!"


class NotificationDispatcher:
    """
    Best-effort notifications for the scoring pipeline. Every public method swallows and logs
    its own failures; callers never see an exception from here.
    """

    def __init__(self, session: AsyncSession, sender: PushSender):
        self.session = session
        self.sender = sender

    async def claim_once(self, key: str) -> bool:
        """Conditional insert into the receipts table. True only for the first caller of `key`."""
        stmt = (
            upsert_insert(self.session, NotificationReceipt.__table__)
            .values(key=key, sent_at=utcnow())
            .on_conflict_do_nothing(index_elements=["key"])
            .returning(NotificationReceipt.__table__.c.id)
        )
        inserted = (await self.session.execute(stmt)).scalar_one_or_none()
        return inserted is not None

    async def _display_name(self, user_id: UUID) -> str:
        name = await self.session.scalar(select(Profile.display_name).where(Profile.user_id == user_id))
        return name or "Someone"

    async def _goals(self, user_id: UUID) -> Goals:
        row = (await self.session.execute(
            select(Profile.move_goal, Profile.exercise_goal, Profile.stand_goal).where(Profile.user_id == user_id)
        )).first()
        return Goals.from_profile(*row) if row else Goals()

    async def _competitor_ids(self, user_id: UUID, day: date) -> list[UUID]:
        comp_ids = select(Participant.competition_id).join(
            Competition, Competition.id == Participant.competition_id
        ).where(
            Participant.user_id == user_id,
            Competition.status == "active",
            Competition.start_date <= day,
            Competition.end_date >= day,
        )
        rows = (await self.session.execute(
            select(Participant.user_id)
            .where(Participant.competition_id.in_(comp_ids), Participant.user_id != user_id)
            .distinct()
        )).scalars().all()
        return sorted(set(rows), key=str)

    async def dispatch_rings_closed(self, user_id: UUID, day: date) -> bool:
        """
        Celebrate a fully closed day at most once per (user, date), guarded by the record's flag
        (check-then-set). Competitors get one broadcast per newly closed ring type.
        Returns True when the personal celebration was sent.
        """
        try:
            record = await self.session.scalar(
                select(ActivityRecord)
                .where(ActivityRecord.user_id == user_id, ActivityRecord.date == day)
                .execution_options(populate_existing=True)
            )
            if record is None or record.rings_closed == 0:
                return False

            rings = _ring_types(record, await self._goals(user_id))
            await self._broadcast_ring_closures(user_id, day, rings)

            if record.rings_closed < 3 or record.rings_closed_notified:
                return False
            record.rings_closed_notified = True
            await self.session.commit()

            self.sender.send(PushMessage(
                recipient_ids=[str(user_id)],
                title="All rings closed!",
                body="You closed all three rings today. Keep the streak going.",
                data={"type": "rings_closed", "date": day.isoformat()},
            ))
            log.info("rings_closed_notified", user_id=str(user_id), date=day.isoformat())
            return True
        except Exception as e:
            await self.session.rollback()
            log.error("notification_dispatch_failed", kind="rings_closed", user_id=str(user_id), error=str(e), exc_info=True)
            return False

    async def _broadcast_ring_closures(self, user_id: UUID, day: date, rings: list[str]) -> None:
        new_rings = [r for r in rings if await self.claim_once(f"ring:{user_id}:{day.isoformat()}:{r}")]
        await self.session.commit()
        if not new_rings:
            return
        recipients = await self._competitor_ids(user_id, day)
        if not recipients:
            return
        name = await self._display_name(user_id)
        if "all" in new_rings:
            body = f"{name} closed all their rings today!"
        else:
            labels = " and ".join(RING_LABELS[r] for r in new_rings)
            body = f"{name} closed their {labels} ring{'s' if len(new_rings) > 1 else ''}!"
        try:
            self.sender.send(PushMessage(
                recipient_ids=[str(r) for r in recipients],
                title="Ring closed!",
                body=body,
                data={"type": "ring_closure", "user_id": str(user_id), "rings": new_rings, "date": day.isoformat()},
            ))
        except Exception as e:
            log.error("notification_dispatch_failed", kind="ring_closure", user_id=str(user_id), error=str(e))
            return
        log.info("ring_closure_broadcast", user_id=str(user_id), rings=new_rings, recipients=len(recipients))

    async def dispatch_progress_nudges(self, user_id: UUID, day: date) -> list[str]:
        """
        Personal nudge for each ring at 80-99% of goal, once per (user, date, ring).
        Returns the rings nudged by this call.
        """
        try:
            record = await self.session.scalar(
                select(ActivityRecord)
                .where(ActivityRecord.user_id == user_id, ActivityRecord.date == day)
                .execution_options(populate_existing=True)
            )
            if record is None:
                return []
            progress = _ring_progress(record, await self._goals(user_id))
            due = [
                ring for ring, (raw, goal) in progress.items()
                if NUDGE_THRESHOLD <= raw / goal < 1
            ]
            claimed = [r for r in due if await self.claim_once(f"ring:{user_id}:{day.isoformat()}:{r}_nudge")]
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            log.error("notification_dispatch_failed", kind="progress_nudge", user_id=str(user_id), error=str(e))
            return []

        sent: list[str] = []
        for ring in claimed:
            raw, goal = progress[ring]
            title, body = _nudge_text(ring, raw, goal)
            try:
                self.sender.send(PushMessage(
                    recipient_ids=[str(user_id)],
                    title=title,
                    body=body,
                    data={
                        "type": "ring_progress_nudge",
                        "ring": ring,
                        "progress": round(raw / goal, 4),
                        "remaining": math.ceil(goal - raw),
                        "date": day.isoformat(),
                    },
                ))
            except Exception as e:
                log.error("notification_dispatch_failed", kind="progress_nudge", ring=ring, user_id=str(user_id), error=str(e))
                continue
            sent.append(ring)
        if sent:
            log.info("progress_nudges_sent", user_id=str(user_id), rings=sent, date=day.isoformat())
        return sent

    async def dispatch_rank_overtake(
        self, passed_user_id: UUID, passer_user_id: UUID, competition_id: UUID, new_rank: int, previous_rank: int,
    ) -> bool:
        """One push per overtake event; deduplication is the caller's job (one call per diffed event)."""
        try:
            name = await self._display_name(passer_user_id)
            self.sender.send(PushMessage(
                recipient_ids=[str(passed_user_id)],
                title="You've been overtaken!",
                body=f"{name} just passed you. You dropped from #{previous_rank} to #{new_rank}.",
                data={
                    "type": "rank_overtake",
                    "competition_id": str(competition_id),
                    "passer_user_id": str(passer_user_id),
                    "previous_rank": previous_rank,
                    "new_rank": new_rank,
                },
            ))
            log.info(
                "rank_overtake_notified",
                competition_id=str(competition_id), passed_user_id=str(passed_user_id),
                passer_user_id=str(passer_user_id), previous_rank=previous_rank, new_rank=new_rank,
            )
            return True
        except Exception as e:
            log.error(
                "notification_dispatch_failed", kind="rank_overtake",
                competition_id=str(competition_id), passed_user_id=str(passed_user_id), error=str(e),
            )
            return False


def get_push_sender() -> PushSender:
    return QueuedPushSender()
