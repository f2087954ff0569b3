"""Settings for the operation layer.

All values can be overridden via environment variables prefixed with
``OPKIT_`` or a ``.env`` file.

Order of precedence (highest → lowest):
    1. Environment variables (``OPKIT_API_PREFIX``, etc.)
    2. ``.env`` file
    3. Defaults below
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class OperationSettings(BaseSettings):
    """Settings for dispatching operations and serving them over HTTP."""

    model_config = SettingsConfigDict(
        env_prefix="OPKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    debug: bool = Field(default=False, description="Expose exception details in error responses")
    log_level: str = Field(default="INFO", description="Structlog log level")
    log_format: Literal["json", "console"] | None = Field(
        default=None,
        description="Log renderer, auto-detected from the terminal when unset",
    )
    service_name: str = Field(default="opkit", description="Service name attached to log entries")

    # ── API ──────────────────────────────────────────────────────
    api_prefix: str = Field(default="/api/", description="Path prefix of RESTful operations")
    title: str = Field(default="opkit", description="OpenAPI title")
    version: str = Field(default="0.1.0", description="OpenAPI version string")

    @field_validator("api_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        return "/" + value.strip("/") + "/"


@lru_cache(maxsize=1)
def get_settings() -> OperationSettings:
    """Cached settings, loaded once per process."""
    return OperationSettings()
