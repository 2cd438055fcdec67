from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, UniqueConstraint, Uuid
from movetogether.db import Base


class ChatMessageFlag(Base):
    """
    Audit row for a moderated chat message. Insert-only.
      - auto_hidden=True  => blocked by the toxicity model (counts toward auto-mute)
      - auto_hidden=False => allowed but queued for human review
    """
    __tablename__ = "chat_message_flags"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    message_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    competition_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("competitions.id", ondelete="CASCADE"), index=True, nullable=False
    )
    author_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)

    toxicity_score: Mapped[float] = mapped_column(Float, nullable=False)
    categories: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Set explicitly by the pipeline so the violation window uses the same clock as the decision
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        # A retried message_id cannot be flagged twice for the same outcome
        UniqueConstraint("message_id", "auto_hidden", name="uq_chat_flag_message_outcome"),
    )
