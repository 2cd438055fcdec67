import pytest
from movetogether.errors import InvalidDataError
from movetogether.models.competition import CompetitionDailyData
from movetogether.services.scorer import Goals
from movetogether.services.scoring_strategies import STRATEGIES, strategy_for, total_points

def _day(**kw):
    values = dict(move_calories=600, exercise_minutes=15, stand_hours=12, steps=5000,
                  workouts_completed=2, total_score=83.33, rings_closed=2)
    values.update(kw)
    return CompetitionDailyData(**values)

GOALS = Goals(500, 30, 12)

def test_ring_close_counts_rings():
    assert strategy_for("ring_close")(_day(), GOALS, {}) == 2

def test_default_type_is_ring_close():
    assert strategy_for(None) is STRATEGIES["ring_close"]

def test_score_uses_total_score():
    assert strategy_for("score")(_day(), GOALS, {}) == 83.33

def test_percentage_is_uncapped_at_100_but_capped_at_999():
    assert strategy_for("percentage")(_day(), GOALS, {}) == 120 + 50 + 100
    assert strategy_for("percentage")(_day(move_calories=50000), GOALS, {}) == 999 + 50 + 100

def test_percentage_rounds_halves_up():
    day = _day(move_calories=252.5, exercise_minutes=0, stand_hours=1.5)
    assert strategy_for("percentage")(day, GOALS, {}) == 51 + 0 + 13

def test_raw_numbers_and_steps():
    assert strategy_for("raw_numbers")(_day(), GOALS, {}) == 600 + 15 + 12
    assert strategy_for("step_count")(_day(), GOALS, {}) == 5000

def test_workout_uses_configured_weight():
    assert strategy_for("workout")(_day(), GOALS, {}) == 2
    assert strategy_for("workout")(_day(), GOALS, {"points_per_workout": 5}) == 10

def test_total_is_sum_over_days():
    days = [_day(rings_closed=1), _day(rings_closed=3), _day(rings_closed=0)]
    assert total_points(days, GOALS, "ring_close", None) == 4

def test_unknown_type_rejected():
    with pytest.raises(InvalidDataError):
        strategy_for("fastest_mile")
