from __future__ import annotations

import structlog
from pydantic import SecretStr, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from zapguard.breaker import CircuitBreakerConfig
from zapguard.logging import configure_structlog, get_log_level_value

DEFAULT_CLOUDFLARE_API_BASE_URL = "https://api.cloudflare.com/client/v4"


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class BreakerSettings(BaseSettings):
    """Environment-driven breaker thresholds and logging level."""

    model_config = prefixed_settings_config("ZAPGUARD_")

    failure_threshold: int = 5
    success_threshold: int = 2
    reset_timeout_ms: int = 30_000
    half_open_failure_threshold: int = 1
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        get_log_level_value(value)
        return value.strip().upper()

    @model_validator(mode="after")
    def _validate_breaker_settings(self) -> BreakerSettings:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.success_threshold < 1:
            raise ValueError("success_threshold must be >= 1")
        if self.reset_timeout_ms < 0:
            raise ValueError("reset_timeout_ms must be >= 0")
        if self.half_open_failure_threshold < 1:
            raise ValueError("half_open_failure_threshold must be >= 1")
        return self

    def configure_logging(self) -> structlog.stdlib.BoundLogger:
        """Configure structlog at ``log_level`` and return the zapguard logger."""
        return configure_structlog(log_level=self.log_level)

    def to_config(self) -> CircuitBreakerConfig:
        """Build the breaker configuration described by these settings."""
        return CircuitBreakerConfig(
            failure_threshold=self.failure_threshold,
            success_threshold=self.success_threshold,
            reset_timeout_ms=self.reset_timeout_ms,
            half_open_failure_threshold=self.half_open_failure_threshold,
        )


class CloudflareKVSettings(BaseSettings):
    """Connection settings for the Cloudflare Workers KV storage adapter."""

    model_config = prefixed_settings_config("ZAPGUARD_CF_")

    account_id: str
    namespace_id: str
    api_token: SecretStr
    api_base_url: str = DEFAULT_CLOUDFLARE_API_BASE_URL
    timeout_seconds: float = 10.0
    retry_attempts: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 5.0

    @field_validator("account_id", "namespace_id", "api_base_url", mode="before")
    @classmethod
    def _validate_required_string(cls, value: object, info: ValidationInfo) -> object:
        if not isinstance(value, str):
            return value
        normalized = value.strip()
        if not normalized:
            raise ValueError(f"{info.field_name} must be non-empty")
        return normalized

    @model_validator(mode="after")
    def _validate_cloudflare_settings(self) -> CloudflareKVSettings:
        if not self.api_token.get_secret_value().strip():
            raise ValueError("api_token must be non-empty")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be >= 1")
        if self.retry_min_seconds < 0:
            raise ValueError("retry_min_seconds must be >= 0")
        if self.retry_max_seconds < self.retry_min_seconds:
            raise ValueError("retry_max_seconds must be >= retry_min_seconds")
        return self
