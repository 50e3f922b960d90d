"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import math
import os
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


DEFAULT_WEBHOOK_URL = "https://academyofsigma.app.n8n.cloud/webhook/search-referral"


def to_positive_number(value: Any, fallback: float) -> float:
    """Parse a finite, strictly positive number or return the fallback.

    Args:
        value: Raw value (usually an environment string).
        fallback: Value returned when parsing fails or the result is not
            a finite positive number.

    Returns:
        The parsed number, or ``fallback``.

    Examples:
        >>> to_positive_number("250", 150)
        250.0
        >>> to_positive_number("-1", 150)
        150
        >>> to_positive_number("inf", 150)
        150
    """
    if isinstance(value, bool):
        return fallback
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    return parsed if math.isfinite(parsed) and parsed > 0 else fallback


class ValidatorSettings(BaseSettings):
    """Referral validation endpoint configuration."""

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client fixed-window rate limiting",
    )
    rate_limit_max: int = Field(
        150,
        description="Maximum number of requests allowed per window (per client)",
    )
    rate_limit_window_ms: float = Field(
        15 * 60 * 1000,
        description="Rate limit window size in milliseconds",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    timeout_ms: float = Field(
        10000,
        description="Upper bound for the whole upstream webhook call in milliseconds",
    )
    mock: bool = Field(
        False,
        description="Resolve codes locally instead of calling the webhook",
        validation_alias=AliasChoices("MOCK", "VALIDATOR_MOCK"),
    )
    mock_delay_ms: float = Field(
        1000,
        description="Artificial delay applied to mock resolutions in milliseconds",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="VALIDATOR_",
        case_sensitive=False,
        populate_by_name=True,
    )

    @field_validator("rate_limit_window_ms", "timeout_ms", mode="before")
    @classmethod
    def _coerce_positive(cls, value: Any, info: ValidationInfo) -> float:
        default = cls.model_fields[info.field_name].default
        return to_positive_number(value, default)

    @field_validator("rate_limit_max", mode="before")
    @classmethod
    def _coerce_rate_limit_max(cls, value: Any, info: ValidationInfo) -> int:
        # Counts are integers, so "count >= 2.5" is the same test as "count >= 3".
        default = cls.model_fields[info.field_name].default
        return math.ceil(to_positive_number(value, default))


class WebhookSettings(BaseSettings):
    """Upstream referral webhook configuration."""

    webhook_url: str = Field(
        DEFAULT_WEBHOOK_URL,
        description="URL of the referral lookup webhook",
    )
    auth_header_name: str = Field(
        "x-aos-key",
        description="Header carrying the shared secret sent to the webhook",
    )
    auth_header_value: str = Field(
        "aos-scaleflow-validator",
        description="Shared secret value sent to the webhook",
    )

    model_config = SettingsConfigDict(
        env_prefix="N8N_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


def _build_validator_settings() -> ValidatorSettings:
    return ValidatorSettings()


def _build_webhook_settings() -> WebhookSettings:
    return WebhookSettings()


def _build_log_settings() -> LogSettings:
    return LogSettings()


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    validator: ValidatorSettings = Field(default_factory=_build_validator_settings)
    webhook: WebhookSettings = Field(default_factory=_build_webhook_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
