from __future__ import annotations
import uuid
import datetime as dt
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Boolean, Date, DateTime, Float, Integer, UniqueConstraint, Uuid, func
from movetogether.db import Base


class ActivityRecord(Base):
    """
    One row per (user, civil date). Raw metrics as submitted plus the server-side score.
    Re-submission overwrites in place; `rings_closed_notified` survives overwrites.
    """
    __tablename__ = "daily_activity"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    move_calories: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    exercise_minutes: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    stand_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    steps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    distance_meters: Mapped[float | None] = mapped_column(Float, nullable=True)
    workouts_completed: Mapped[int | None] = mapped_column(Integer, nullable=True)

    move_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    exercise_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    stand_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    rings_closed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rings_closed_notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    calculated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_activity_user_date"),
    )
