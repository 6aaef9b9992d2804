"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Mirrorship server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Default to loopback: the server has no auth layer of its own.
    mirrorship_host: str = "127.0.0.1"
    mirrorship_port: int = 8001
    mirrorship_log_level: str = "info"
    mirrorship_allow_insecure_bind: bool = False

    # Storage
    db_path: str = "~/.mirrorship/activity.db"

    # Encryption (platform credentials at rest)
    encryption_key: str = ""

    # Aggregation
    report_timezone: str = "UTC"
    dashboard_days: int = 365
    daily_goal: int = 15
    # Optional override for the bundled sources.yaml
    sources_config_path: str = ""

    # Sync
    sync_default_days: int = 365
    batch_sync_delay_seconds: float = 1.0
    admin_api_key: str = ""
    http_timeout_seconds: float = 15.0

    # Provider credentials used when a link carries none
    github_token: str = ""
    youtube_api_key: str = ""


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
