"""Chain data models: headers, extrinsics and events.

Plain data classes produced by a ``ChainClient``. The matcher and the
block processor only ever see these shapes, never the RPC library's own
codec objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Header:
    """A block header as delivered by a head subscription.

    Attributes:
        number: Block number.
        hash: Block hash (0x-prefixed hex).
    """

    number: int
    hash: str


@dataclass(frozen=True)
class Extrinsic:
    """A decoded extrinsic inside a block.

    Attributes:
        index: Position of the extrinsic in its block.
        pallet: Call module, e.g. ``Balances``.
        method: Call function, e.g. ``transfer_keep_alive``.
        signer: SS58 address of the signer, or None for unsigned extrinsics.
        nonce: Signer nonce, or None for unsigned extrinsics.
        args: Decoded call arguments (JSON-compatible).
        text: Full string representation used for substring matching.
    """

    index: int
    pallet: str
    method: str
    signer: str | None = None
    nonce: int | None = None
    args: list[Any] = field(default_factory=list)
    text: str = ""

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Event:
    """A decoded runtime event.

    Attributes:
        pallet: Emitting module, e.g. ``Balances``.
        method: Event name, e.g. ``Transfer``.
        data: Decoded event attributes (JSON-compatible).
        text: Serialized ``data`` used for substring matching.
    """

    pallet: str
    method: str
    data: Any = None
    text: str = ""
