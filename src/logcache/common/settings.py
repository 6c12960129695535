"""Configuration for the Log Cache metadata tooling."""

from __future__ import annotations

from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def env_field(default, env_name: str):
    return Field(default, validation_alias=env_name)


class LogCacheSettings(BaseSettings):
    """Runtime settings read from the environment (and an optional ``.env``)."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    log_cache_addr: Optional[str] = env_field(None, "LOG_CACHE_ADDR")
    skip_auth: bool = env_field(False, "LOG_CACHE_SKIP_AUTH")
    api_url: Optional[str] = env_field(None, "LOG_CACHE_API_URL")
    access_token: Optional[SecretStr] = env_field(None, "LOG_CACHE_TOKEN")
    username: Optional[str] = env_field(None, "LOG_CACHE_USERNAME")
    http_timeout_seconds: float = env_field(10.0, "LOG_CACHE_HTTP_TIMEOUT")
    deadline_seconds: Optional[float] = env_field(None, "LOG_CACHE_DEADLINE")
    rate_window_seconds: int = env_field(15, "LOG_CACHE_RATE_WINDOW")
    max_concurrency: int = env_field(4, "LOG_CACHE_MAX_CONCURRENCY")
    log_level: str = env_field("WARNING", "LOG_CACHE_LOG_LEVEL")
    otel_exporter_endpoint: Optional[str] = env_field(None, "LOG_CACHE_OTEL_EXPORTER_ENDPOINT")
    otel_exporter_headers: Optional[str] = env_field(None, "LOG_CACHE_OTEL_EXPORTER_HEADERS")
    otel_sampler_ratio: float = env_field(1.0, "LOG_CACHE_OTEL_SAMPLER_RATIO")
    otel_service_name: str = env_field("logcache-meta", "LOG_CACHE_OTEL_SERVICE_NAME")
    otel_instrument_httpx: bool = env_field(True, "LOG_CACHE_OTEL_INSTRUMENT_HTTPX")

    @field_validator("log_cache_addr", "api_url", "username", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
        return value

    @field_validator("deadline_seconds", mode="before")
    @classmethod
    def _parse_deadline(cls, value):
        if value in (None, ""):
            return None
        return value

    @field_validator("max_concurrency", "rate_window_seconds")
    @classmethod
    def _require_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("http_timeout_seconds", "deadline_seconds")
    @classmethod
    def _require_positive_duration(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("must be greater than 0 seconds")
        return value

    @property
    def token(self) -> Optional[str]:
        if self.access_token is None:
            return None
        value = self.access_token.get_secret_value().strip()
        return value or None
