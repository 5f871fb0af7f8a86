"""LabTrack configuration — settings for storage, auth and real-time delivery."""

from typing import Literal

from pydantic_settings import BaseSettings

RealtimeMode = Literal["embedded", "remote"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///data/labtrack.db"

    # CORS (comma-separated origins)
    cors_origins: str = "http://localhost:3000"

    # Auth: empty secret = auth disabled (dev mode, X-User-Id header accepted)
    auth_secret: str = ""
    access_token_ttl_seconds: int = 3600

    # Real-time delivery
    # "embedded": hub lives in this process. "remote": POST to a separate real-time process.
    realtime_mode: RealtimeMode = "embedded"
    realtime_fallback_url: str = "http://localhost:3001"
    realtime_internal_key: str = ""
    realtime_timeout_seconds: float = 10.0
    realtime_max_pending: int = 200
    typing_expiry_seconds: float = 3.0
    sse_heartbeat_seconds: float = 30.0

    # Notifications
    notification_list_limit: int = 50

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
