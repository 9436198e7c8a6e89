"""Configuration management for the asset cache exporter.

Settings are read from the process environment (or a ``.env`` file) through
``pydantic_settings.BaseSettings``. Field names double as environment variable
names, matched case-insensitively, so ``port`` is set with ``PORT`` and
``assetcache_poll_interval`` with ``ASSETCACHE_POLL_INTERVAL``.

Usage
- ``config = ExporterConfig()`` in the entrypoint
"""

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..status import DEFAULT_STATUS_COMMAND

DEFAULT_PORT = 9923


class ExporterConfig(BaseSettings):
    """Exporter configuration.

    Only ``PORT`` is needed in practice; the remaining settings keep local
    development and tests convenient.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Exposition
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    assetcache_bind_address: str = Field(default="0.0.0.0")

    # Collection
    assetcache_poll_interval: float = Field(default=5.0, gt=0)
    assetcache_status_command: List[str] = Field(
        default_factory=lambda: list(DEFAULT_STATUS_COMMAND)
    )
    assetcache_status_timeout: float = Field(default=30.0, gt=0)

    # Logging
    assetcache_log_level: str = Field(default="INFO")
    assetcache_log_format: str = Field(default="json")

    @field_validator("assetcache_status_command")
    @classmethod
    def _command_not_empty(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("status command must not be empty")
        return value

    @field_validator("assetcache_log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level

    @field_validator("assetcache_log_format")
    @classmethod
    def _known_log_format(cls, value: str) -> str:
        fmt = value.lower()
        if fmt not in {"json", "console"}:
            raise ValueError("log format must be 'json' or 'console'")
        return fmt

