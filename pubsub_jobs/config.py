"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from pubsub_jobs.constants import DEFAULT_EXTEND_BY_MS, DEFAULT_PERIOD_MS


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Pub/Sub API
    project: str = "local-project"
    base_url: str = "https://pubsub.googleapis.com/v1"
    http_timeout_seconds: float = 30.0
    static_access_token: str | None = None  # emulator or pre-issued token

    # Long-running jobs (milliseconds, matching the deadline API surface)
    default_extend_by_ms: int = DEFAULT_EXTEND_BY_MS
    default_period_ms: int = DEFAULT_PERIOD_MS
    payload_encoding: str | None = "utf-8"  # None returns raw bytes

    # Worker Configuration
    worker_subscription: str = "jobs"
    worker_poll_interval_seconds: float = 1.0
    worker_concurrency: int = 1

    # Observability
    otel_exporter_otlp_endpoint: str | None = None
    otel_service_name: str = "pubsub-jobs"
    prometheus_port: int = 9090
    log_level: str = "INFO"
    log_format: str = "json"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
