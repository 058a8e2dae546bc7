"""Chain RPC related errors."""

from __future__ import annotations

from chainmon.errors.chainmon_errors import ChainmonError


class ChainError(ChainmonError):
    """Error talking to a chain endpoint."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        super().__init__(message, code="chain-error")
        self.endpoint = endpoint


class SubscriptionError(ChainError):
    """The header subscription terminated or failed."""
