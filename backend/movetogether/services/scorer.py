from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from movetogether.schemas.activity import ActivitySubmission, CalculatedScore

DEFAULT_MOVE_GOAL = 500.0
DEFAULT_EXERCISE_GOAL = 30.0
DEFAULT_STAND_GOAL = 12.0

_TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class Goals:
    move: float = DEFAULT_MOVE_GOAL
    exercise: float = DEFAULT_EXERCISE_GOAL
    stand: float = DEFAULT_STAND_GOAL

    @classmethod
    def from_profile(cls, move_goal: float | None, exercise_goal: float | None, stand_goal: float | None) -> "Goals":
        return cls(
            move=_goal_or_default(move_goal, DEFAULT_MOVE_GOAL),
            exercise=_goal_or_default(exercise_goal, DEFAULT_EXERCISE_GOAL),
            stand=_goal_or_default(stand_goal, DEFAULT_STAND_GOAL),
        )


def _goal_or_default(value: float | None, default: float) -> float:
    if value is None or value <= 0:
        return default
    return float(value)


def round_half_up(value: float) -> float:
    return float(Decimal(str(value)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def ring_percentage(raw: float, goal: float) -> float:
    """Percentage of goal clamped to [0, 100]. Unrounded."""
    if goal <= 0:
        raise ValueError("goal must be positive")
    return max(0.0, min(raw / goal * 100.0, 100.0))


def score(submission: ActivitySubmission, goals: Goals) -> CalculatedScore:
    """Authoritative daily score. Goals must come from server-held state, never from the submission."""
    move = ring_percentage(submission.move_calories, goals.move)
    exercise = ring_percentage(submission.exercise_minutes, goals.exercise)
    stand = ring_percentage(submission.stand_hours, goals.stand)

    rings_closed = sum(1 for pct in (move, exercise, stand) if pct >= 100.0)

    return CalculatedScore(
        move_percentage=round_half_up(move),
        exercise_percentage=round_half_up(exercise),
        stand_percentage=round_half_up(stand),
        total_score=round_half_up((move + exercise + stand) / 3),
        rings_closed=rings_closed,
    )
