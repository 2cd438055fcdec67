from __future__ import annotations
import math
from datetime import date, timedelta
from movetogether.errors import InvalidDataError
from movetogether.schemas.activity import ActivitySubmission
from movetogether.services.clock import utc_today

# Physically impossible per-day values
MAX_MOVE_CALORIES = 10_000
MAX_EXERCISE_MINUTES = 1_440
MAX_STAND_HOURS = 24
MAX_STEPS = 100_000
MAX_BACKDATE_DAYS = 365

_RANGES = (
    ("moveCalories", "move_calories", MAX_MOVE_CALORIES),
    ("exerciseMinutes", "exercise_minutes", MAX_EXERCISE_MINUTES),
    ("standHours", "stand_hours", MAX_STAND_HOURS),
    ("steps", "steps", MAX_STEPS),
)


def validate(submission: ActivitySubmission, today: date | None = None) -> None:
    """
    Reject the whole submission if any metric is impossible or the date is out of range.
    Raises InvalidDataError naming the first rule that failed; returns None otherwise.
    """
    for label, attr, upper in _RANGES:
        value = getattr(submission, attr)
        if not math.isfinite(value) or value < 0 or value > upper:
            raise InvalidDataError(f"{label} must be between 0 and {upper}")

    distance = submission.distance_meters
    if distance is not None and (not math.isfinite(distance) or distance < 0):
        raise InvalidDataError("distanceMeters must be >= 0")
    if submission.workouts_completed is not None and submission.workouts_completed < 0:
        raise InvalidDataError("workoutsCompleted must be >= 0")

    today = today or utc_today()
    if submission.date > today:
        raise InvalidDataError("date cannot be in the future")
    if submission.date < today - timedelta(days=MAX_BACKDATE_DAYS):
        raise InvalidDataError(f"date cannot be more than {MAX_BACKDATE_DAYS} days in the past")
