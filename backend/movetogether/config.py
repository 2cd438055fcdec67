from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "movetogether-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "MoveTogether")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/movetogether_dev")
    redis_url: str = os.getenv("REDIS_URL", "redis://redis:6379/0")
    notifications_queue: str = os.getenv("NOTIFICATIONS_QUEUE", "notifications")
    # Housekeeping; receipts must outlive the 365-day backdating window
    receipt_retention_days: int = int(os.getenv("RECEIPT_RETENTION_DAYS", "400"))
    rate_limit_retention_hours: int = int(os.getenv("RATE_LIMIT_RETENTION_HOURS", "48"))

    # Bearer tokens are issued by the platform auth service; we only verify them
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_audience: str | None = os.getenv("JWT_AUDIENCE") or None

    # Chat moderation
    toxicity_provider: str = os.getenv("TOXICITY_PROVIDER", "auto")  # auto|openai|perspective|none
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_moderation_model: str = os.getenv("OPENAI_MODERATION_MODEL", "omni-moderation-latest")
    perspective_api_key: str = os.getenv("PERSPECTIVE_API_KEY", "")
    toxicity_timeout_seconds: float = float(os.getenv("TOXICITY_TIMEOUT_SECONDS", "5"))
    block_threshold: float = float(os.getenv("MODERATION_BLOCK_THRESHOLD", "0.70"))
    warn_threshold: float = float(os.getenv("MODERATION_WARN_THRESHOLD", "0.6"))
    auto_mute_after: int = int(os.getenv("MODERATION_AUTO_MUTE_AFTER", "3"))
    violation_window_minutes: int = int(os.getenv("MODERATION_VIOLATION_WINDOW_MIN", "60"))
    mute_duration_hours: int = int(os.getenv("MODERATION_MUTE_HOURS", "24"))

    # Rate limits (requests per window)
    score_rate_limit: int = int(os.getenv("SCORE_RATE_LIMIT", "20"))
    score_rate_window_seconds: int = int(os.getenv("SCORE_RATE_WINDOW_SECONDS", "3600"))
    chat_rate_limit: int = int(os.getenv("CHAT_RATE_LIMIT", "60"))
    chat_rate_window_seconds: int = int(os.getenv("CHAT_RATE_WINDOW_SECONDS", "60"))

    # Push delivery
    onesignal_app_id: str = os.getenv("ONESIGNAL_APP_ID", "")
    onesignal_rest_api_key: str = os.getenv("ONESIGNAL_REST_API_KEY", "")

    # Health provider OAuth clients
    fitbit_client_id: str = os.getenv("FITBIT_CLIENT_ID", "")
    fitbit_client_secret: str = os.getenv("FITBIT_CLIENT_SECRET", "")
    whoop_client_id: str = os.getenv("WHOOP_CLIENT_ID", "")
    whoop_client_secret: str = os.getenv("WHOOP_CLIENT_SECRET", "")
    oura_client_id: str = os.getenv("OURA_CLIENT_ID", "")
    oura_client_secret: str = os.getenv("OURA_CLIENT_SECRET", "")
    strava_client_id: str = os.getenv("STRAVA_CLIENT_ID", "")
    strava_client_secret: str = os.getenv("STRAVA_CLIENT_SECRET", "")
    garmin_client_id: str = os.getenv("GARMIN_CLIENT_ID", "")
    garmin_client_secret: str = os.getenv("GARMIN_CLIENT_SECRET", "")

settings = Settings()
