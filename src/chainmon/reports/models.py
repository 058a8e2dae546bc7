"""Report models: the unit of delivery, plus the durable queue codec.

A ``Report`` is either a ``NotificationReport`` (one block's matched
activity) or a ``StatusReport`` (process lifecycle message). Reports are
serialized to tagged JSON for the batch queue file, where entries are
concatenated with ``SEPARATOR``.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from chainmon.errors.chainmon_errors import ReportDecodeError
from chainmon.matching.accounts import WILDCARD, ExtendedAccount, WatchedAccount

SEPARATOR = ":-separator-:"
_ESCAPED_SEPARATOR = SEPARATOR.replace(":", "\\u003a")

_NOTIFICATION = "notification"
_STATUS = "status"


class ActivityKind(enum.StrEnum):
    """What kind of chain activity an item describes."""

    EVENT = "event"
    EXTRINSIC = "extrinsic"


@dataclass(frozen=True)
class ActivityItem:
    """One matched occurrence inside a block.

    Attributes:
        kind: Event or extrinsic.
        pallet: Pallet name.
        method: Method (call function or event name).
        account: The watched account it is attributed to, or ``WILDCARD``.
        payload: Decoded call arguments or event data.
        signer: Extrinsic signer (extrinsics only).
        nonce: Extrinsic nonce (extrinsics only).
        index: Extrinsic index within the block (extrinsics only).
    """

    kind: ActivityKind
    pallet: str
    method: str
    account: ExtendedAccount
    payload: Any = None
    signer: str | None = None
    nonce: int | None = None
    index: int | None = None

    @property
    def is_wildcard(self) -> bool:
        return self.account is WILDCARD

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict."""
        account: Any = str(WILDCARD)
        if not self.is_wildcard:
            account = self.account.to_dict()  # type: ignore[union-attr]
        return {
            "kind": self.kind.value,
            "pallet": self.pallet,
            "method": self.method,
            "account": account,
            "payload": self.payload,
            "signer": self.signer,
            "nonce": self.nonce,
            "index": self.index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActivityItem:
        """Create from a dict produced by :meth:`to_dict`."""
        raw_account = data["account"]
        account: ExtendedAccount
        if raw_account == str(WILDCARD):
            account = WILDCARD
        else:
            account = WatchedAccount(
                address=raw_account["address"], label=raw_account.get("label", "")
            )
        nonce = data.get("nonce")
        return cls(
            kind=ActivityKind(data["kind"]),
            pallet=data["pallet"],
            method=data["method"],
            account=account,
            payload=data.get("payload"),
            signer=data.get("signer"),
            nonce=int(nonce) if nonce is not None else None,
            index=data.get("index"),
        )


@dataclass(frozen=True)
class NotificationReport:
    """Matched activity of a single block. ``items`` is never empty."""

    chain: str
    block_number: int
    block_hash: str
    timestamp: int  # milliseconds since epoch, from the chain
    items: tuple[ActivityItem, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.items:
            msg = f"notification for block #{self.block_number} has no items"
            raise ValueError(msg)
        object.__setattr__(self, "items", tuple(self.items))

    @property
    def block_time(self) -> datetime:
        """The block timestamp as an aware datetime."""
        return datetime.fromtimestamp(self.timestamp / 1000, tz=UTC)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a tagged plain dict."""
        return {
            "_type": _NOTIFICATION,
            "chain": self.chain,
            "block_number": self.block_number,
            "block_hash": self.block_hash,
            "timestamp": self.timestamp,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NotificationReport:
        """Create from a dict produced by :meth:`to_dict`."""
        return cls(
            chain=data["chain"],
            block_number=int(data["block_number"]),
            block_hash=data["block_hash"],
            timestamp=int(data["timestamp"]),
            items=tuple(ActivityItem.from_dict(i) for i in data["items"]),
        )


@dataclass(frozen=True)
class StatusReport:
    """A process lifecycle message (startup, restart, flush notices)."""

    message: str
    time: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a tagged plain dict."""
        return {"_type": _STATUS, "time": self.time.isoformat(), "message": self.message}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StatusReport:
        """Create from a dict produced by :meth:`to_dict`."""
        return cls(message=data["message"], time=datetime.fromisoformat(data["time"]))


Report = NotificationReport | StatusReport


def serialize_report(report: Report) -> str:
    """Serialize a report to tagged JSON that never contains ``SEPARATOR``.

    JSON structural colons are always followed by a space, so a separator can
    only occur inside a string value. Its colons are written as ``\\u003a``
    escapes there, which ``json.loads`` decodes back to the same text.
    """
    text = json.dumps(report.to_dict(), default=str, ensure_ascii=False)
    return text.replace(SEPARATOR, _ESCAPED_SEPARATOR)


def deserialize_report(text: str) -> Report:
    """Decode a report produced by :func:`serialize_report`.

    Raises:
        ReportDecodeError: On malformed JSON, unknown type tag or missing fields.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ReportDecodeError(f"malformed report: {exc}") from exc
    if not isinstance(data, dict):
        raise ReportDecodeError("report is not a JSON object")

    kind = data.get("_type")
    try:
        if kind == _NOTIFICATION:
            return NotificationReport.from_dict(data)
        if kind == _STATUS:
            return StatusReport.from_dict(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise ReportDecodeError(f"invalid {kind} report: {exc}") from exc
    raise ReportDecodeError(f"unknown report type: {kind!r}")
