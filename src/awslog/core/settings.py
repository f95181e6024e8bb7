"""
Process-wide configuration for awslog using Pydantic v2 Settings.

Per-destination writer options live in ``core/config.py`` and the facade
modules; this module only holds settings shared by every writer in the
process (internal diagnostics and exit-time draining).
"""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import (  # type: ignore[import-not-found]
    BaseSettings,
    SettingsConfigDict,
)

LATEST_CONFIG_SCHEMA_VERSION = "1.0"


class CoreSettings(BaseModel):
    """Core diagnostics and shutdown settings."""

    internal_logging_enabled: bool = Field(
        default=True,
        description=("Emit WARN diagnostics for delivery and configuration failures"),
    )
    internal_debug_enabled: bool = Field(
        default=False,
        description=("Emit DEBUG diagnostics for writer lifecycle events"),
    )
    atexit_drain_enabled: bool = Field(
        default=True,
        description=("Stop and drain registered writers when the interpreter exits"),
    )
    atexit_drain_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description=("Total time to wait for registered writers to drain at exit"),
    )
    signal_handler_enabled: bool = Field(
        default=False,
        description=("Drain registered writers on SIGTERM/SIGINT before exiting"),
    )


class Settings(BaseSettings):
    """Top-level configuration model with versioning and core settings."""

    schema_version: str = Field(default=LATEST_CONFIG_SCHEMA_VERSION)

    core: CoreSettings = Field(default_factory=CoreSettings)

    model_config = SettingsConfigDict(
        env_prefix="AWSLOG_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )
