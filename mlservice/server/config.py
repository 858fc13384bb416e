"""
mlservice - Configuration

Centralized configuration management using pydantic-settings.

All configuration is loaded from environment variables (prefix MLSERVICE_)
or a .env file, with sensible defaults.

Environment Variables:
    MLSERVICE_APP_NAME: Name announced at startup (default: mlservice)
    MLSERVICE_BUILD_ID: Build identifier, usually the git commit hash
        (default: unknown)
    MLSERVICE_LOG_LEVEL: Logging level (default: INFO)
    MLSERVICE_LOG_FORMAT: Log format: json or text (default: json)
    MLSERVICE_REDACT_LOG_FIELDS: JSON list of fields to redact in logs
    MLSERVICE_METRICS_ENABLED: Enable Prometheus metrics (default: true)

Usage:
    from mlservice.server.config import get_settings

    settings = get_settings()
    print(settings.build_id)
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "text")


class ServiceSettings(BaseSettings):
    """Service configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MLSERVICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Identity
    # =========================================================================

    app_name: str = Field(
        default="mlservice",
        description="Name announced by the driver at startup"
    )

    build_id: str = Field(
        default="unknown",
        description="Build identifier (git commit hash of the build)"
    )

    # =========================================================================
    # Logging
    # =========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_format: str = Field(
        default="json",
        description="Log format (json or text)"
    )

    redact_log_fields: list[str] = Field(
        default=["password", "token", "api_key"],
        description="Fields to redact in structured logs"
    )

    # =========================================================================
    # Metrics
    # =========================================================================

    metrics_enabled: bool = Field(
        default=True,
        description="Enable Prometheus metrics collection"
    )

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}")
        return value

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}")
        return value


@lru_cache()
def get_settings() -> ServiceSettings:
    """
    Get service settings (cached).

    Returns:
        ServiceSettings instance
    """
    return ServiceSettings()


def reload_settings() -> ServiceSettings:
    """
    Reload settings (clears cache).

    Returns:
        Fresh ServiceSettings instance
    """
    get_settings.cache_clear()
    return get_settings()
