from __future__ import annotations
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "20261001_0001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("user_id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("display_name", sa.String(length=120), nullable=True),
        sa.Column("move_goal", sa.Float(), nullable=True),
        sa.Column("exercise_goal", sa.Float(), nullable=True),
        sa.Column("stand_goal", sa.Float(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    op.create_table(
        "user_moderation",
        sa.Column("user_id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="good_standing"),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "status IN ('good_standing','warned','suspended','banned')", name="ck_user_moderation_status"
        ),
    )

    op.create_table(
        "daily_activity",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("move_calories", sa.Float(), nullable=False, server_default="0"),
        sa.Column("exercise_minutes", sa.Float(), nullable=False, server_default="0"),
        sa.Column("stand_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("steps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("distance_meters", sa.Float(), nullable=True),
        sa.Column("workouts_completed", sa.Integer(), nullable=True),
        sa.Column("move_percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("exercise_percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("stand_percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("rings_closed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rings_closed_notified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("calculated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("user_id", "date", name="uq_daily_activity_user_date"),
    )
    op.create_index("ix_daily_activity_user_id", "daily_activity", ["user_id"])

    op.create_table(
        "competitions",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="upcoming"),
        sa.Column("scoring_type", sa.String(length=24), nullable=False, server_default="ring_close"),
        sa.Column("scoring_config", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("status IN ('upcoming','active','completed')", name="ck_competitions_status"),
        sa.CheckConstraint("end_date >= start_date", name="ck_competitions_window"),
    )

    op.create_table(
        "competition_participants",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("competition_id", sa.Uuid(), sa.ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("total_points", sa.Float(), nullable=False, server_default="0"),
        sa.Column("rank", sa.Integer(), nullable=True),
        sa.Column("is_muted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("muted_until", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("joined_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("last_sync_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint("competition_id", "user_id", name="uq_participant_unique"),
    )
    op.create_index("ix_competition_participants_competition_id", "competition_participants", ["competition_id"])
    op.create_index("ix_competition_participants_user_id", "competition_participants", ["user_id"])

    op.create_table(
        "competition_daily_data",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("competition_id", sa.Uuid(), sa.ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("move_calories", sa.Float(), nullable=False, server_default="0"),
        sa.Column("exercise_minutes", sa.Float(), nullable=False, server_default="0"),
        sa.Column("stand_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("steps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("workouts_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("rings_closed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("points", sa.Float(), nullable=False, server_default="0"),
        sa.UniqueConstraint("competition_id", "user_id", "date", name="uq_competition_daily_data_day"),
    )
    op.create_index("ix_competition_daily_data_competition_id", "competition_daily_data", ["competition_id"])
    op.create_index("ix_competition_daily_data_user_id", "competition_daily_data", ["user_id"])

    op.create_table(
        "chat_message_flags",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("message_id", sa.Uuid(), nullable=False),
        sa.Column("competition_id", sa.Uuid(), sa.ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_id", sa.Uuid(), nullable=False),
        sa.Column("toxicity_score", sa.Float(), nullable=False),
        sa.Column("categories", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("auto_hidden", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint("message_id", "auto_hidden", name="uq_chat_flag_message_outcome"),
        sa.CheckConstraint("toxicity_score >= 0 AND toxicity_score <= 1", name="ck_chat_flag_score_range"),
    )
    op.create_index("ix_chat_message_flags_message_id", "chat_message_flags", ["message_id"])
    op.create_index("ix_chat_message_flags_competition_id", "chat_message_flags", ["competition_id"])
    op.create_index("ix_chat_message_flags_author_id", "chat_message_flags", ["author_id"])
    # Violation window lookup
    op.create_index(
        "ix_chat_message_flags_author_window", "chat_message_flags",
        ["author_id", "competition_id", "auto_hidden", "created_at"],
    )

    op.create_table(
        "notification_receipts",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("key", sa.String(length=200), nullable=False),
        sa.Column("sent_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint("key", name="uq_notification_receipt_key"),
    )

    op.create_table(
        "rate_limits",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("window_start", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("request_count", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("user_id", "action", "window_start", name="uq_rate_limit_window"),
    )
    op.create_index("ix_rate_limits_user_id", "rate_limits", ["user_id"])

def downgrade() -> None:
    op.drop_index("ix_rate_limits_user_id", table_name="rate_limits")
    op.drop_table("rate_limits")
    op.drop_table("notification_receipts")
    op.drop_index("ix_chat_message_flags_author_window", table_name="chat_message_flags")
    op.drop_index("ix_chat_message_flags_author_id", table_name="chat_message_flags")
    op.drop_index("ix_chat_message_flags_competition_id", table_name="chat_message_flags")
    op.drop_index("ix_chat_message_flags_message_id", table_name="chat_message_flags")
    op.drop_table("chat_message_flags")
    op.drop_index("ix_competition_daily_data_user_id", table_name="competition_daily_data")
    op.drop_index("ix_competition_daily_data_competition_id", table_name="competition_daily_data")
    op.drop_table("competition_daily_data")
    op.drop_index("ix_competition_participants_user_id", table_name="competition_participants")
    op.drop_index("ix_competition_participants_competition_id", table_name="competition_participants")
    op.drop_table("competition_participants")
    op.drop_table("competitions")
    op.drop_index("ix_daily_activity_user_id", table_name="daily_activity")
    op.drop_table("daily_activity")
    op.drop_table("user_moderation")
    op.drop_table("profiles")
