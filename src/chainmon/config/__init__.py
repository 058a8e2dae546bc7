"""Configuration: pydantic-settings models loaded from YAML and env vars."""

from __future__ import annotations

from chainmon.config.settings import (
    AccountConfig,
    ApiSubscription,
    AppConfig,
    BatchConfig,
    ReportersConfig,
    load_config,
)

__all__ = [
    "AccountConfig",
    "ApiSubscription",
    "AppConfig",
    "BatchConfig",
    "ReportersConfig",
    "load_config",
]
