"""Substrate RPC client built on ``async_substrate_interface``.

Normalizes the library's decoded block data into ``chainmon.chain.models``
and bridges its callback-style header subscription into an async iterator.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import TYPE_CHECKING, Any

import websockets
from async_substrate_interface import AsyncSubstrateInterface
from async_substrate_interface.errors import SubstrateRequestException

from chainmon.chain.models import Event, Extrinsic, Header
from chainmon.errors.chain_errors import ChainError, SubscriptionError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

logger = logging.getLogger(__name__)

_RPC_ERRORS = (
    SubstrateRequestException,
    websockets.exceptions.WebSocketException,
    OSError,
    TimeoutError,
)

_STREAM_END = object()


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------


def _value(obj: Any) -> Any:
    """Unwrap a scale codec object to its decoded value."""
    return getattr(obj, "value", obj)


def _jsonable(value: Any) -> Any:
    """Round-trip through JSON so payloads are plain data."""
    return json.loads(json.dumps(value, default=str))


def _name(obj: Any) -> str:
    if isinstance(obj, dict):
        return str(obj.get("name", ""))
    return str(obj) if obj is not None else ""


def extrinsic_from_raw(index: int, raw: Any) -> Extrinsic:
    """Build an ``Extrinsic`` from a decoded extrinsic dict."""
    value = _value(raw) or {}
    call = value.get("call") or {}
    call_args = call.get("call_args") or []
    if isinstance(call_args, dict):
        args = list(call_args.values())
    else:
        args = [a.get("value") if isinstance(a, dict) else a for a in call_args]
    signer = value.get("address")
    nonce = value.get("nonce")
    return Extrinsic(
        index=index,
        pallet=_name(call.get("call_module")),
        method=_name(call.get("call_function")),
        signer=str(signer) if signer else None,
        nonce=int(nonce) if nonce is not None else None,
        args=_jsonable(args),
        text=json.dumps(value, default=str),
    )


def event_from_raw(raw: Any) -> Event:
    """Build an ``Event`` from a decoded event record."""
    record = _value(raw) or {}
    inner = record.get("event", record) if isinstance(record, dict) else record
    inner = _value(inner) or {}
    attributes = inner.get("attributes", inner.get("params"))
    data = _jsonable(attributes)
    return Event(
        pallet=_name(inner.get("module_id")),
        method=_name(inner.get("event_id")),
        data=data,
        text=json.dumps(data),
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class SubstrateChainClient:
    """Async Substrate node client.

    Usage::

        client = SubstrateChainClient("wss://rpc.polkadot.io")
        await client.connect()
        try:
            async for header in client.subscribe_heads(finalized=True):
                ...
        finally:
            await client.close()
    """

    def __init__(
        self,
        endpoint: str,
        *,
        factory: Callable[[str], AsyncSubstrateInterface] = AsyncSubstrateInterface,
    ) -> None:
        self._endpoint = endpoint
        self._factory = factory
        self._substrate: AsyncSubstrateInterface | None = None

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def is_connected(self) -> bool:
        return self._substrate is not None

    @property
    def ss58_format(self) -> int | None:
        substrate = self._ensure_connected()
        fmt = getattr(substrate, "ss58_format", None)
        return int(fmt) if fmt is not None else None

    async def connect(self) -> None:
        """Open the websocket and load runtime metadata."""
        substrate = self._factory(self._endpoint)
        try:
            await substrate.initialize()
        except _RPC_ERRORS as exc:
            msg = f"cannot connect to {self._endpoint}: {exc}"
            raise ChainError(msg, endpoint=self._endpoint) from exc
        self._substrate = substrate

    async def close(self) -> None:
        """Close the connection (idempotent)."""
        if self._substrate is not None:
            substrate, self._substrate = self._substrate, None
            with contextlib.suppress(*_RPC_ERRORS):
                await substrate.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def chain_name(self) -> str:
        substrate = self._ensure_connected()
        response = await self._call("system_chain", substrate.rpc_request, "system_chain", [])
        return str(response.get("result", "")) if isinstance(response, dict) else str(response)

    async def get_header(self, number: int) -> Header:
        substrate = self._ensure_connected()
        block_hash = await self._call("get_block_hash", substrate.get_block_hash, number)
        if not block_hash:
            raise ChainError(f"no block hash for #{number}", endpoint=self._endpoint)
        return Header(number=number, hash=str(block_hash))

    async def get_extrinsics(self, block_hash: str) -> list[Extrinsic]:
        substrate = self._ensure_connected()
        block = await self._call("get_block", substrate.get_block, block_hash=block_hash)
        raw = (block or {}).get("extrinsics") or []
        return [extrinsic_from_raw(i, ex) for i, ex in enumerate(raw)]

    async def get_events(self, block_hash: str) -> list[Event]:
        substrate = self._ensure_connected()
        records = await self._call("get_events", substrate.get_events, block_hash=block_hash)
        return [event_from_raw(r) for r in records or []]

    async def get_timestamp(self, block_hash: str) -> int:
        result = await self._call(
            "timestamp", self._ensure_connected().query, "Timestamp", "Now", block_hash=block_hash
        )
        return int(_value(result) or 0)

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    async def subscribe_heads(self, *, finalized: bool) -> AsyncIterator[Header]:
        """Yield headers from the new-heads or finalized-heads stream.

        The library pushes headers into an unbounded queue, so the node
        subscription keeps draining while the consumer is busy.

        Raises:
            SubscriptionError: When the underlying subscription ends or fails.
        """
        substrate = self._ensure_connected()
        queue: asyncio.Queue[Any] = asyncio.Queue()

        async def _handler(obj: Any, update_nr: int, subscription_id: str) -> None:
            header = obj.get("header", obj)
            queue.put_nowait((int(header["number"]), header.get("hash")))

        task = asyncio.create_task(
            substrate.subscribe_block_headers(_handler, finalized_only=finalized)
        )
        task.add_done_callback(lambda _t: queue.put_nowait(_STREAM_END))
        kind = "finalized" if finalized else "new"
        logger.debug("Subscribed to %s heads on %s", kind, self._endpoint)
        try:
            while True:
                item = await queue.get()
                if item is _STREAM_END:
                    cause = None if task.cancelled() else task.exception()
                    msg = f"{kind} heads subscription on {self._endpoint} ended"
                    raise SubscriptionError(msg, endpoint=self._endpoint) from cause
                number, block_hash = item
                if block_hash:
                    yield Header(number=number, hash=str(block_hash))
                else:
                    yield await self.get_header(number)
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, *_RPC_ERRORS):
                await task

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> AsyncSubstrateInterface:
        if self._substrate is None:
            msg = "Chain client not connected. Call connect() first."
            raise ChainError(msg, endpoint=self._endpoint)
        return self._substrate

    async def _call(
        self, operation: str, fn: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any
    ) -> Any:
        try:
            return await fn(*args, **kwargs)
        except _RPC_ERRORS as exc:
            msg = f"{operation} failed on {self._endpoint}: {exc}"
            raise ChainError(msg, endpoint=self._endpoint) from exc
