"""ChainClient: the boundary between the pipeline and a chain node."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from chainmon.chain.models import Event, Extrinsic, Header


class ChainClient(Protocol):
    """What the tracker and block processor need from a chain node.

    Every method raises ``ChainError`` on failure; the header stream raises
    ``SubscriptionError`` when it terminates.
    """

    @property
    def endpoint(self) -> str: ...

    @property
    def ss58_format(self) -> int | None: ...

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def chain_name(self) -> str: ...

    def subscribe_heads(self, *, finalized: bool) -> AsyncIterator[Header]: ...

    async def get_header(self, number: int) -> Header: ...

    async def get_extrinsics(self, block_hash: str) -> list[Extrinsic]: ...

    async def get_events(self, block_hash: str) -> list[Event]: ...

    async def get_timestamp(self, block_hash: str) -> int: ...
