from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable
from movetogether.errors import InvalidDataError
from movetogether.models.competition import CompetitionDailyData
from movetogether.services.scorer import Goals

# Per-ring cap for "percentage" competitions (goals can be exceeded, unlike the daily score)
PERCENTAGE_CAP = 999

DailyPoints = Callable[[CompetitionDailyData, Goals, dict], float]


def ring_close_points(day: CompetitionDailyData, goals: Goals, config: dict) -> float:
    return float(day.rings_closed)


def score_points(day: CompetitionDailyData, goals: Goals, config: dict) -> float:
    return float(day.total_score)


def percentage_points(day: CompetitionDailyData, goals: Goals, config: dict) -> float:
    total = 0
    for raw, goal in (
        (day.move_calories, goals.move),
        (day.exercise_minutes, goals.exercise),
        (day.stand_hours, goals.stand),
    ):
        pct = (Decimal(str(raw)) / Decimal(str(goal)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        total += min(int(pct), PERCENTAGE_CAP)
    return float(total)


def raw_numbers_points(day: CompetitionDailyData, goals: Goals, config: dict) -> float:
    return float(day.move_calories + day.exercise_minutes + day.stand_hours)


def step_count_points(day: CompetitionDailyData, goals: Goals, config: dict) -> float:
    return float(day.steps)


def workout_points(day: CompetitionDailyData, goals: Goals, config: dict) -> float:
    per_workout = float(config.get("points_per_workout", 1))
    return float(day.workouts_completed or 0) * per_workout


STRATEGIES: dict[str, DailyPoints] = {
    "ring_close": ring_close_points,
    "score": score_points,
    "percentage": percentage_points,
    "raw_numbers": raw_numbers_points,
    "step_count": step_count_points,
    "workout": workout_points,
}


def strategy_for(scoring_type: str | None) -> DailyPoints:
    try:
        return STRATEGIES[scoring_type or "ring_close"]
    except KeyError:
        raise InvalidDataError(f"Unknown scoring type: {scoring_type}")


def total_points(days: list[CompetitionDailyData], goals: Goals, scoring_type: str | None, config: dict | None) -> float:
    """Competition total = sum of daily points across the window."""
    fn = strategy_for(scoring_type)
    return round(sum(fn(d, goals, config or {}) for d in days), 2)
