from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Float, DateTime, Uuid, func
from movetogether.db import Base

class Profile(Base):
    """Server-held user profile. Ring goals here are the only goals the scorer trusts."""
    __tablename__ = "profiles"
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    display_name: Mapped[str | None] = mapped_column(String(120))
    move_goal: Mapped[float | None] = mapped_column(Float)      # kcal
    exercise_goal: Mapped[float | None] = mapped_column(Float)  # minutes
    stand_goal: Mapped[float | None] = mapped_column(Float)     # hours
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

class UserModeration(Base):
    __tablename__ = "user_moderation"
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="good_standing")  # good_standing|warned|suspended|banned
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
