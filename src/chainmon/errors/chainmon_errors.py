"""ChainmonError: base exception class for all chainmon errors."""

from __future__ import annotations


class ChainmonError(Exception):
    """Base error for all chainmon operations.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code string.
    """

    def __init__(self, message: str, *, code: str = "chainmon-error") -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ConfigError(ChainmonError):
    """Invalid or missing configuration. Fatal at startup."""

    def __init__(self, message: str, *, field: str = "") -> None:
        super().__init__(message, code="config-error")
        self.field = field


class InvalidAccountError(ChainmonError):
    """A watched account address could not be decoded."""

    def __init__(self, address: str) -> None:
        super().__init__(f"invalid account address: {address!r}", code="invalid-account")
        self.address = address


class ReportDecodeError(ChainmonError):
    """A queued report could not be decoded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="report-decode-error")


class DeliveryError(ChainmonError):
    """A reporter failed to deliver to its sink."""

    def __init__(self, message: str, *, reporter: str = "") -> None:
        super().__init__(message, code="delivery-error")
        self.reporter = reporter
