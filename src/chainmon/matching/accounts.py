"""Account matching: decide which watched account an occurrence belongs to.

Matching is deliberately coarse. Besides an exact signer comparison, an
account matches whenever its address string occurs anywhere in the
extrinsic's text or in the event's serialized data. This catches accounts
used as call arguments (transfer destinations, proxies, ...) without any
per-pallet schema knowledge, at the cost of false positives when an address
shows up in unrelated data.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from substrateinterface.utils.ss58 import is_valid_ss58_address, ss58_decode, ss58_encode

from chainmon.errors.chainmon_errors import InvalidAccountError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from chainmon.chain.models import Event, Extrinsic


@dataclass(frozen=True)
class WatchedAccount:
    """An account from the watch-list, in chain-native address format."""

    address: str
    label: str = ""

    def to_dict(self) -> dict[str, str]:
        """Serialize to a plain dict."""
        return {"address": self.address, "label": self.label}


class Wildcard(enum.Enum):
    """Marker for occurrences matched only because no watch-list is set."""

    WILDCARD = "Wildcard"

    def __str__(self) -> str:
        return self.value


WILDCARD = Wildcard.WILDCARD

ExtendedAccount = WatchedAccount | Wildcard


# ---------------------------------------------------------------------------
# Match outcome variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NoMatch:
    """The occurrence is not of interest."""

    @property
    def account(self) -> None:
        return None


@dataclass(frozen=True)
class WildcardMatch:
    """The watch-list is empty, so everything matches."""

    @property
    def account(self) -> Wildcard:
        return WILDCARD


@dataclass(frozen=True)
class MatchedWith:
    """The occurrence matched a specific watched account."""

    account: WatchedAccount


MatchOutcome = NoMatch | WildcardMatch | MatchedWith


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def match_extrinsic(extrinsic: Extrinsic, accounts: Sequence[WatchedAccount]) -> MatchOutcome:
    """Match an extrinsic against the watch-list.

    A signer match takes precedence over a substring match anywhere in the
    list; within each pass the first account in watch-list order wins.
    """
    if not accounts:
        return WildcardMatch()
    if extrinsic.signer is not None:
        for account in accounts:
            if account.address == extrinsic.signer:
                return MatchedWith(account)
    text = str(extrinsic)
    for account in accounts:
        if account.address in text:
            return MatchedWith(account)
    return NoMatch()


def match_event(event: Event, accounts: Sequence[WatchedAccount]) -> MatchOutcome:
    """Match an event against the watch-list by substring over its data."""
    if not accounts:
        return WildcardMatch()
    for account in accounts:
        if account.address in event.text:
            return MatchedWith(account)
    return NoMatch()


# ---------------------------------------------------------------------------
# Address handling
# ---------------------------------------------------------------------------


class _RawAccount(Protocol):
    address: str
    label: str


def is_valid_address(address: str) -> bool:
    """Return True if *address* is a valid SS58 address of any network."""
    try:
        return bool(is_valid_ss58_address(address))
    except (ValueError, TypeError, IndexError):
        return False


def resolve_accounts(
    raw_accounts: Iterable[_RawAccount], ss58_format: int | None = None
) -> tuple[WatchedAccount, ...]:
    """Convert configured accounts into chain-native ``WatchedAccount`` values.

    Args:
        raw_accounts: Configured accounts (anything with ``address``/``label``).
        ss58_format: Address prefix of the connected chain. When None the
            addresses are kept as configured.

    Raises:
        InvalidAccountError: If an address cannot be decoded.
    """
    resolved: list[WatchedAccount] = []
    for raw in raw_accounts:
        if not is_valid_address(raw.address):
            raise InvalidAccountError(raw.address)
        address = raw.address
        if ss58_format is not None:
            address = ss58_encode(ss58_decode(raw.address), ss58_format=ss58_format)
        resolved.append(WatchedAccount(address=address, label=raw.label))
    return tuple(resolved)
