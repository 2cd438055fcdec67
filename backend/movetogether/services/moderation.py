from __future__ import annotations
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from movetogether.config import Settings, settings
from movetogether.db import upsert_insert
from movetogether.errors import Forbidden, NotFound
from movetogether.models.chat import ChatMessageFlag
from movetogether.models.competition import Competition, Participant
from movetogether.models.user import UserModeration
from movetogether.services.clock import as_utc, utcnow
from movetogether.services.profanity import BlocklistFilter, default_filter
from movetogether.services.toxicity import ToxicityClassifier

log = structlog.get_logger()

RESTRICTED_STATUSES = ("suspended", "banned")

REASON_RESTRICTED = "Your account is restricted"
REASON_MUTED = "You are currently muted in this competition"
REASON_PROFANITY = "Your message contains inappropriate language. Please keep conversations respectful."
REASON_BLOCKED = "Your message was blocked for violating chat guidelines. Please keep conversations respectful."
REASON_AUTO_MUTED = (
    "Your message was blocked for violating chat guidelines. "
    "Due to repeated violations, you have been muted for {hours} hours."
)


@dataclass
class ModerationDecision:
    """
    outcome:
      allowed  => delivered, no flag
      flagged  => delivered, flag stored for human review
      blocked  => not delivered (blocklist or toxicity)
      muted    => not delivered, author muted by this block
      rejected => not delivered, author restricted or already muted (gate)
    """
    outcome: str
    allowed: bool
    blocked: bool | None = None
    reason: str | None = None
    muted_until: datetime | None = None
    warnings_remaining: int | None = None
    flagged: bool | None = None
    score: float | None = None
    status_code: int = 200

    def to_response(self) -> dict:
        body = {
            "allowed": self.allowed,
            "blocked": self.blocked,
            "reason": self.reason,
            "muted_until": self.muted_until.isoformat() if self.muted_until else None,
            "warnings_remaining": self.warnings_remaining,
            "flagged": self.flagged,
            "score": self.score,
        }
        return {k: v for k, v in body.items() if v is not None}


class ModerationPipeline:
    """
    Gates, in order: account status, competition mute, blocklist, toxicity model.
    The first decisive step wins. A classifier outage lets the message through.
    """

    def __init__(
        self,
        session: AsyncSession,
        classifier: ToxicityClassifier,
        blocklist: BlocklistFilter = default_filter,
        cfg: Settings = settings,
    ):
        self.session = session
        self.classifier = classifier
        self.blocklist = blocklist
        self.cfg = cfg

    async def moderate(
        self,
        author_id: UUID,
        competition_id: UUID,
        content: str,
        message_id: UUID | None = None,
        now: datetime | None = None,
    ) -> ModerationDecision:
        now = as_utc(now) if now else utcnow()
        message_id = message_id or uuid.uuid4()
        bind = dict(competition_id=str(competition_id), author_id=str(author_id), message_id=str(message_id))

        if await self.session.get(Competition, competition_id) is None:
            raise NotFound("Competition not found")
        participant = await self.session.scalar(
            select(Participant).where(Participant.competition_id == competition_id, Participant.user_id == author_id)
        )
        if participant is None:
            raise Forbidden("You are not a participant of this competition")

        # 1. account status
        status = await self.session.scalar(select(UserModeration.status).where(UserModeration.user_id == author_id))
        if status in RESTRICTED_STATUSES:
            log.info("message_rejected_account_status", status=status, **bind)
            return ModerationDecision(outcome="rejected", allowed=False, reason=REASON_RESTRICTED, status_code=403)

        # 2. competition mute
        muted_until = as_utc(participant.muted_until)
        if participant.is_muted and muted_until and muted_until > now:
            log.info("message_rejected_muted", muted_until=muted_until.isoformat(), **bind)
            return ModerationDecision(
                outcome="rejected", allowed=False, reason=REASON_MUTED, muted_until=muted_until, status_code=403,
            )
        if participant.is_muted:
            participant.is_muted = False
            participant.muted_until = None
            await self.session.commit()
            log.info("mute_expired", **bind)

        # 3. blocklist, independent of the model
        term = self.blocklist.scan(content)
        if term is not None:
            await self._store_flag(message_id, competition_id, author_id, 1.0, {"blocklist": 1.0}, hidden=True, auto=False, now=now)
            await self.session.commit()
            log.info("message_blocked", source="blocklist", **bind)
            return ModerationDecision(outcome="blocked", allowed=False, blocked=True, reason=REASON_PROFANITY)

        # 4. toxicity model
        try:
            result = await self.classifier.classify(content)
        except Exception as e:
            log.error("toxicity_classifier_failed", classifier=getattr(self.classifier, "name", "unknown"), error=str(e), **bind)
            return ModerationDecision(outcome="allowed", allowed=True)

        score = float(result.score)
        if score >= self.cfg.block_threshold:
            return await self._block(participant, message_id, competition_id, author_id, score, result.categories, now, bind)

        if score >= self.cfg.warn_threshold:
            await self._store_flag(message_id, competition_id, author_id, score, result.categories, hidden=False, auto=False, now=now)
            await self.session.commit()
            log.info("message_flagged_for_review", score=score, **bind)
            return ModerationDecision(outcome="flagged", allowed=True, flagged=True, score=score)

        return ModerationDecision(outcome="allowed", allowed=True, flagged=False, score=score)

    async def _block(
        self, participant: Participant, message_id: UUID, competition_id: UUID, author_id: UUID,
        score: float, categories: dict, now: datetime, bind: dict,
    ) -> ModerationDecision:
        await self._store_flag(message_id, competition_id, author_id, score, categories, hidden=True, auto=True, now=now)
        await self.session.flush()

        window_start = now - timedelta(minutes=self.cfg.violation_window_minutes)
        # Distinct message ids so a retried message cannot double count
        count = await self.session.scalar(
            select(func.count(func.distinct(ChatMessageFlag.message_id))).where(
                ChatMessageFlag.author_id == author_id,
                ChatMessageFlag.competition_id == competition_id,
                ChatMessageFlag.auto_hidden.is_(True),
                ChatMessageFlag.created_at >= window_start,
                ChatMessageFlag.created_at <= now,
            )
        ) or 0

        if count >= self.cfg.auto_mute_after:
            muted_until = now + timedelta(hours=self.cfg.mute_duration_hours)
            participant.is_muted = True
            participant.muted_until = muted_until
            await self.session.commit()
            log.warning("author_auto_muted", score=score, violations=count, muted_until=muted_until.isoformat(), **bind)
            return ModerationDecision(
                outcome="muted", allowed=False, blocked=True,
                reason=REASON_AUTO_MUTED.format(hours=self.cfg.mute_duration_hours),
                muted_until=muted_until,
            )

        await self.session.commit()
        log.info("message_blocked", source="toxicity", score=score, violations=count, **bind)
        return ModerationDecision(
            outcome="blocked", allowed=False, blocked=True, reason=REASON_BLOCKED,
            warnings_remaining=max(0, self.cfg.auto_mute_after - count),
        )

    async def _store_flag(
        self, message_id: UUID, competition_id: UUID, author_id: UUID, score: float,
        categories: dict, *, hidden: bool, auto: bool, now: datetime,
    ) -> None:
        stmt = upsert_insert(self.session, ChatMessageFlag.__table__).values(
            id=uuid.uuid4(),
            message_id=message_id,
            competition_id=competition_id,
            author_id=author_id,
            toxicity_score=score,
            categories=dict(categories or {}),
            is_hidden=hidden,
            auto_hidden=auto,
            created_at=now,
        ).on_conflict_do_nothing(index_elements=["message_id", "auto_hidden"])
        await self.session.execute(stmt)
