"""Error hierarchy for chainmon."""

from __future__ import annotations

from chainmon.errors.chain_errors import ChainError, SubscriptionError
from chainmon.errors.chainmon_errors import (
    ChainmonError,
    ConfigError,
    DeliveryError,
    InvalidAccountError,
    ReportDecodeError,
)

__all__ = [
    "ChainError",
    "ChainmonError",
    "ConfigError",
    "DeliveryError",
    "InvalidAccountError",
    "ReportDecodeError",
    "SubscriptionError",
]
