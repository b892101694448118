"""
Configuration management for firewatch.

This module uses Pydantic's BaseSettings to manage configuration
through environment variables. It provides a centralized and typed
way to handle application settings.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    These settings are loaded from environment variables prefixed with
    ``FIREWATCH_`` or from a local ``.env`` file.
    """

    # Storage
    DATABASE_URL: str = "sqlite:///data/firewatch.db"
    REDIS_URL: str = "redis://localhost:6379/0"

    # Polling configuration
    POLLING_ENABLED: bool = True
    POLL_INTERVAL: int = 30  # seconds
    POLL_CONCURRENCY: int = 10
    SNAPSHOT_INTERVAL: int = 4 * 3600  # seconds
    DAILY_SNAPSHOT_RETENTION_DAYS: int = 7

    # Device API
    DEVICE_TIMEOUT: float = 30.0  # seconds
    DEVICE_VERIFY_TLS: bool = False

    # Credential encryption (minimum 32 characters)
    MASTER_KEY: str | None = None

    # Alerting
    ALERT_DEDUP_WINDOW: int = 120  # seconds
    HEALTH_ALERT_WINDOW: int = 120  # seconds
    HEALTH_ALERT_SENSITIVITY: float = 1.0  # percent
    LICENSE_ALERT_WINDOW: int = 24 * 3600  # seconds
    ALERT_STORM_THRESHOLD: int = 10
    ALERT_STORM_WINDOW: int = 300  # seconds
    ALERT_STORM_SUPPRESSION: int = 900  # seconds

    # Thresholds
    CPU_ALERT_THRESHOLD: float = 80.0
    RAM_ALERT_THRESHOLD: float = 90.0
    LICENSE_WARNING_DAYS: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        env_prefix="FIREWATCH_",
    )


# Global settings instance
settings = Settings()
