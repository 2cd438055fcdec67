from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
import datetime as dt


class ActivitySubmission(BaseModel):
    """
    One user's raw metrics for one civil date, as sent by the client.
    Unknown keys (e.g. a client-computed score) are ignored; scores are only computed server-side.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: UUID = Field(alias="userId")
    date: dt.date
    move_calories: float = Field(alias="moveCalories")
    exercise_minutes: float = Field(alias="exerciseMinutes")
    stand_hours: float = Field(alias="standHours")
    steps: int
    distance_meters: float | None = Field(default=None, alias="distanceMeters")
    workouts_completed: int | None = Field(default=None, alias="workoutsCompleted")


class CalculatedScore(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    move_percentage: float = Field(alias="movePercentage")
    exercise_percentage: float = Field(alias="exercisePercentage")
    stand_percentage: float = Field(alias="standPercentage")
    total_score: float = Field(alias="totalScore")
    rings_closed: int = Field(alias="ringsClosed")


class ScoreResponse(BaseModel):
    success: bool = True
    score: CalculatedScore
