"""
Configuration management for the document change tracker.

Handles environment variables and .env loading, and provides default
settings with validation for polling, fetching, storage, notification
and logging.
"""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from doc_change_tracker.models.exceptions import raise_config_error


class LogLevel(str, Enum):
    """Logging level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class TrackerConfig(BaseSettings):
    """
    Central configuration class for the document change tracker.

    Handles all configuration options with environment variable support,
    validation, and sensible defaults for development and production use.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOC_TRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # === Polling Configuration ===
    poll_interval_seconds: float = Field(default=30.0, ge=0.01, le=86400, description="Delay between poll cycles")
    max_concurrent_polls: int = Field(default=100, ge=1, le=1000, description="Maximum documents polled concurrently")
    debounce_window_seconds: float = Field(
        default=5.0, ge=0.0, le=86400, description="Minimum time between two notifications for a document"
    )

    # === Fetch Configuration ===
    retry_attempts: int = Field(default=3, ge=1, le=10, description="Total fetch attempts per document per cycle")
    retry_backoff_seconds: list[float] = Field(
        default=[0.1, 0.5, 2.0], description="Delays between consecutive fetch attempts"
    )
    fetch_timeout_seconds: float = Field(default=10.0, gt=0, le=300, description="Timeout of a single fetch attempt")
    cache_ttl_seconds: float = Field(default=30.0, ge=0.0, le=3600, description="Metadata cache time-to-live")

    # === Provider Configuration ===
    provider_base_url: str = Field(default="https://open.feishu.cn", description="Document provider API base URL")
    provider_token: str | None = Field(default=None, description="Bearer token for the provider API")

    # === Notifier Configuration ===
    notifier_url: str = Field(
        default="https://open.feishu.cn/open-apis/im/v1/messages?receive_id_type=chat_id",
        description="Endpoint that delivers change notifications",
    )
    notifier_token: str | None = Field(default=None, description="Bearer token for the notifier endpoint")
    notifier_timeout_seconds: float = Field(default=10.0, gt=0, le=300, description="Notifier request timeout")

    # === Storage Configuration ===
    database_url: str = Field(default="sqlite:///doc_tracker.db", description="SQLAlchemy database URL")
    database_echo: bool = Field(default=False, description="Log emitted SQL statements")

    # === Metrics & Health Configuration ===
    metrics_window_seconds: float = Field(default=3600.0, ge=60, le=86400, description="Rolling metrics window")
    unhealthy_error_rate: float = Field(default=0.5, ge=0.0, le=1.0, description="Error rate above which unhealthy")
    degraded_error_rate: float = Field(default=0.2, ge=0.0, le=1.0, description="Error rate above which degraded")
    degraded_rate_limit_errors: int = Field(
        default=5, ge=0, description="Rate-limit errors in the window above which degraded"
    )

    # === Logging Configuration ===
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_file: Path | None = Field(default=None, description="Log file path (stderr if None)")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s", description="Log message format"
    )

    @field_validator('retry_backoff_seconds')
    @classmethod
    def validate_backoff(cls, v):
        """Backoff delays must be non-negative."""
        if any(delay < 0 for delay in v):
            raise ValueError("retry_backoff_seconds entries must be >= 0")
        return v

    @field_validator('provider_base_url')
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip('/')

    @model_validator(mode='after')
    def validate_retry_settings(self):
        """Ensure there is a backoff delay between every pair of attempts."""
        if len(self.retry_backoff_seconds) < self.retry_attempts - 1:
            raise_config_error(
                "retry_backoff_seconds needs at least retry_attempts - 1 entries",
                config_key="retry_backoff_seconds",
                expected_type=f"list[float] with >= {self.retry_attempts - 1} entries",
                actual_value=self.retry_backoff_seconds,
            )
        return self

    @model_validator(mode='after')
    def validate_health_thresholds(self):
        """Ensure the degraded threshold sits below the unhealthy one."""
        if self.degraded_error_rate >= self.unhealthy_error_rate:
            raise_config_error(
                "degraded_error_rate must be less than unhealthy_error_rate",
                config_key="degraded_error_rate",
                expected_type="float < unhealthy_error_rate",
                actual_value=self.degraded_error_rate,
            )
        return self

    def get_retry_delays(self) -> list[float]:
        """Delays to sleep before attempts 2..retry_attempts."""
        return list(self.retry_backoff_seconds[: self.retry_attempts - 1])

    def get_log_config(self) -> dict[str, Any]:
        """Get logging configuration dictionary."""
        config = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"standard": {"format": self.log_format}},
            "handlers": {
                "default": {
                    "level": self.log_level.value,
                    "formatter": "standard",
                    "class": "logging.StreamHandler" if not self.log_file else "logging.FileHandler",
                }
            },
            "loggers": {
                "doc_change_tracker": {"handlers": ["default"], "level": self.log_level.value, "propagate": False}
            },
        }

        if self.log_file:
            config["handlers"]["default"]["filename"] = str(self.log_file)

        return config


# Global configuration instance
_config: TrackerConfig | None = None


def get_config() -> TrackerConfig:
    """
    Get the global configuration instance.

    Creates a new instance on first call and reuses it for subsequent calls.
    """
    global _config
    if _config is None:
        _config = TrackerConfig()
    return _config


def reload_config() -> TrackerConfig:
    """Force reload the configuration from environment/files."""
    global _config
    _config = TrackerConfig()
    return _config


def set_config(config: TrackerConfig) -> None:
    """
    Set a custom configuration instance.

    Primarily used for testing or advanced configuration scenarios.
    """
    global _config
    _config = config
