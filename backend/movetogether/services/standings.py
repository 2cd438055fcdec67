from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, timezone as dt_tz
from typing import Iterable
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from movetogether.db import upsert_insert
from movetogether.models.activity import ActivityRecord
from movetogether.models.competition import Competition, CompetitionDailyData, Participant
from movetogether.services.clock import as_utc, utcnow
from movetogether.services.scorer import Goals
from movetogether.services.scoring_strategies import strategy_for, total_points

log = structlog.get_logger()


@dataclass(frozen=True)
class DailyContribution:
    """Plain copy of the day's record, safe to use after a per-competition rollback."""
    move_calories: float
    exercise_minutes: float
    stand_hours: float
    steps: int
    workouts_completed: int
    total_score: float
    rings_closed: int

    @classmethod
    def from_record(cls, record: ActivityRecord) -> "DailyContribution":
        return cls(
            move_calories=record.move_calories,
            exercise_minutes=record.exercise_minutes,
            stand_hours=record.stand_hours,
            steps=record.steps,
            workouts_completed=record.workouts_completed or 0,
            total_score=record.total_score,
            rings_closed=record.rings_closed,
        )


@dataclass(frozen=True)
class OvertakeEvent:
    competition_id: UUID
    passed_user_id: UUID
    passer_user_id: UUID
    previous_rank: int
    new_rank: int


@dataclass
class CompetitionStandings:
    competition_id: UUID
    before: dict[UUID, int]
    after: dict[UUID, int]
    overtakes: list[OvertakeEvent] = field(default_factory=list)


@dataclass
class RankChangeSet:
    results: list[CompetitionStandings] = field(default_factory=list)
    failures: list[tuple[UUID, str]] = field(default_factory=list)

    @property
    def overtakes(self) -> list[OvertakeEvent]:
        return [ev for r in self.results for ev in r.overtakes]


@dataclass(frozen=True)
class _CompetitionRef:
    id: UUID
    start_date: date
    end_date: date
    scoring_type: str
    scoring_config: dict


# ---------- pure helpers: ordering & diff ----------

_EPOCH = datetime(1970, 1, 1, tzinfo=dt_tz.utc)


def rank_order(rows: Iterable[tuple[UUID, float, datetime | None, UUID]]) -> dict[UUID, int]:
    """
    rows: (user_id, total_points, joined_at, participant_id).
    Points descending; ties keep insertion order (joined_at, then participant id).
    """
    def key(row):
        _, points, joined_at, pid = row
        joined = as_utc(joined_at)
        return (-float(points or 0), joined is None, joined or _EPOCH, str(pid))

    ordered = sorted(rows, key=key)
    return {row[0]: idx for idx, row in enumerate(ordered, start=1)}


def detect_overtakes(
    competition_id: UUID, passer_user_id: UUID, before: dict[UUID, int], after: dict[UUID, int]
) -> list[OvertakeEvent]:
    """Participants whose rank got numerically worse and who now sit below the passer."""
    passer_rank = after.get(passer_user_id)
    if passer_rank is None:
        return []
    events: list[OvertakeEvent] = []
    for uid, new_rank in sorted(after.items(), key=lambda kv: kv[1]):
        if uid == passer_user_id:
            continue
        old_rank = before.get(uid)
        if old_rank is None:
            continue
        if new_rank > old_rank and new_rank > passer_rank:
            events.append(OvertakeEvent(
                competition_id=competition_id,
                passed_user_id=uid,
                passer_user_id=passer_user_id,
                previous_rank=old_rank,
                new_rank=new_rank,
            ))
    return events


# ---------- queries ----------

async def active_competitions_for(session: AsyncSession, user_id: UUID, day: date) -> list[_CompetitionRef]:
    rows = (await session.execute(
        select(
            Competition.id, Competition.start_date, Competition.end_date,
            Competition.scoring_type, Competition.scoring_config,
        )
        .join(Participant, Participant.competition_id == Competition.id)
        .where(
            Participant.user_id == user_id,
            Competition.status == "active",
            Competition.start_date <= day,
            Competition.end_date >= day,
        )
        .order_by(Competition.start_date.asc(), Competition.id.asc())
    )).all()
    return [_CompetitionRef(cid, s, e, st or "ring_close", dict(cfg or {})) for (cid, s, e, st, cfg) in rows]


async def current_standings(session: AsyncSession, competition_id: UUID) -> list[tuple[Participant, int]]:
    """(participant, rank) pairs in standings order."""
    parts = (await session.execute(
        select(Participant).where(Participant.competition_id == competition_id)
    )).scalars().all()
    order = rank_order((p.user_id, p.total_points, p.joined_at, p.id) for p in parts)
    return sorted(((p, order[p.user_id]) for p in parts), key=lambda pr: pr[1])


# ---------- reconcile ----------

async def _upsert_daily_data(
    session: AsyncSession, comp: _CompetitionRef, user_id: UUID, day: date,
    contribution: DailyContribution, goals: Goals,
) -> None:
    values = {
        "move_calories": contribution.move_calories,
        "exercise_minutes": contribution.exercise_minutes,
        "stand_hours": contribution.stand_hours,
        "steps": contribution.steps,
        "workouts_completed": contribution.workouts_completed,
        "total_score": contribution.total_score,
        "rings_closed": contribution.rings_closed,
    }
    row = CompetitionDailyData(**values)
    values["points"] = strategy_for(comp.scoring_type)(row, goals, comp.scoring_config)
    stmt = upsert_insert(session, CompetitionDailyData.__table__).values(
        competition_id=comp.id, user_id=user_id, date=day, **values
    )
    stmt = stmt.on_conflict_do_update(index_elements=["competition_id", "user_id", "date"], set_=values)
    await session.execute(stmt)


async def _reconcile_competition(
    session: AsyncSession, comp: _CompetitionRef, user_id: UUID, day: date,
    contribution: DailyContribution, goals: Goals,
) -> CompetitionStandings:
    # Lock the competition's participant rows for the whole recompute (no-op on SQLite)
    parts = (await session.execute(
        select(Participant)
        .where(Participant.competition_id == comp.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )).scalars().all()
    me = next((p for p in parts if p.user_id == user_id), None)
    if me is None:
        raise LookupError(f"user {user_id} is not a participant of competition {comp.id}")

    before = rank_order((p.user_id, p.total_points, p.joined_at, p.id) for p in parts)

    await _upsert_daily_data(session, comp, user_id, day, contribution, goals)
    days = (await session.execute(
        select(CompetitionDailyData)
        .where(
            CompetitionDailyData.competition_id == comp.id,
            CompetitionDailyData.user_id == user_id,
            CompetitionDailyData.date >= comp.start_date,
            CompetitionDailyData.date <= comp.end_date,
        )
        .execution_options(populate_existing=True)
    )).scalars().all()
    new_total = total_points(list(days), goals, comp.scoring_type, comp.scoring_config)

    # Full new order computed before any rank field is touched
    points = {p.user_id: (new_total if p.user_id == user_id else p.total_points) for p in parts}
    after = rank_order((p.user_id, points[p.user_id], p.joined_at, p.id) for p in parts)

    me.total_points = new_total
    me.last_sync_at = utcnow()
    for p in parts:
        p.rank = after[p.user_id]
    await session.commit()

    return CompetitionStandings(
        competition_id=comp.id,
        before=before,
        after=after,
        overtakes=detect_overtakes(comp.id, user_id, before, after),
    )


async def reconcile(
    session: AsyncSession, user_id: UUID, day: date, record: ActivityRecord, goals: Goals,
) -> RankChangeSet:
    """
    Re-rank every active competition of `user_id` whose window contains `day`.
    Each competition commits on its own; a failure rolls back only that competition.
    The ActivityRecord is expected to be committed already.
    """
    contribution = DailyContribution.from_record(record)
    changes = RankChangeSet()
    competitions = await active_competitions_for(session, user_id, day)
    if not competitions:
        log.info("standings_no_active_competitions", user_id=str(user_id), date=day.isoformat())
        return changes

    for comp in competitions:
        try:
            result = await _reconcile_competition(session, comp, user_id, day, contribution, goals)
        except Exception as e:
            await session.rollback()
            log.error(
                "standings_reconcile_failed",
                competition_id=str(comp.id), user_id=str(user_id), date=day.isoformat(), error=str(e),
                exc_info=True,
            )
            changes.failures.append((comp.id, str(e)))
            continue
        changes.results.append(result)
        log.info(
            "standings_reconciled",
            competition_id=str(comp.id), user_id=str(user_id),
            rank=result.after.get(user_id), overtakes=len(result.overtakes),
        )
    return changes
