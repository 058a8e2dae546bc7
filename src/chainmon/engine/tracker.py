"""Chain head tracker: follow one endpoint's header stream in block order.

State machine per endpoint::

    connecting → subscribed → processing → subscribed → ...
                                   ↘ failed (stream ended or chain error)

Headers are processed strictly one after another. When the stream skips
ahead (finalized heads often arrive in bursts) the missing blocks are
fetched by number and processed in ascending order before the new head.
Headers at or below the cursor are discarded. The cursor lives in memory
only; a restart begins at whatever header arrives first.
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

from chainmon.engine.processor import BlockProcessor
from chainmon.errors.chain_errors import SubscriptionError
from chainmon.matching.accounts import resolve_accounts

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chainmon.chain.client import ChainClient
    from chainmon.chain.models import Header
    from chainmon.config.settings import AppConfig
    from chainmon.metrics.collector import MonitorMetrics
    from chainmon.reporters.base import Reporter

logger = logging.getLogger(__name__)


class TrackerState(enum.StrEnum):
    """Lifecycle of a ``ChainHeadTracker``."""

    IDLE = "idle"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    PROCESSING = "processing"
    FAILED = "failed"


class ChainHeadTracker:
    """Follows the head (or finalized head) of one chain endpoint."""

    def __init__(
        self,
        client: ChainClient,
        config: AppConfig,
        reporters: Sequence[Reporter],
        *,
        finalized: bool,
        metrics: MonitorMetrics | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._reporters = list(reporters)
        self._metrics = metrics
        self.finalized = finalized
        self.state = TrackerState.IDLE
        self.last_block: int | None = None
        self.chain = ""
        self._processor: BlockProcessor | None = None

    @property
    def endpoint(self) -> str:
        return self._client.endpoint

    async def run(self) -> None:
        """Connect and process headers until the stream fails.

        Never returns normally.

        Raises:
            ChainError: Connection or fetch failure.
            SubscriptionError: The header stream ended.
            InvalidAccountError: A watched address cannot be used on this chain.
        """
        self.state = TrackerState.CONNECTING
        try:
            await self._client.connect()
            self.chain = await self._client.chain_name()
            accounts = resolve_accounts(self._config.accounts, self._client.ss58_format)
            self._processor = BlockProcessor(
                self._client,
                self.chain,
                accounts,
                self._config.method_subscription,
                self._reporters,
                metrics=self._metrics,
            )
            logger.info(
                "[%s] watching %s heads on %s (%s, %s)",
                self.chain,
                "finalized" if self.finalized else "new",
                self.endpoint,
                "all accounts" if self._config.wildcard else f"{len(accounts)} accounts",
                "all methods" if self._config.matches_all_methods else "filtered methods",
            )

            self.state = TrackerState.SUBSCRIBED
            async for header in self._client.subscribe_heads(finalized=self.finalized):
                await self.on_header(header)
            raise SubscriptionError(
                f"header subscription on {self.endpoint} ended", endpoint=self.endpoint
            )
        except BaseException:
            self.state = TrackerState.FAILED
            raise
        finally:
            await self._client.close()

    async def on_header(self, header: Header) -> None:
        """Advance the cursor to *header*, gap-filling skipped blocks."""
        last = self.last_block
        if last is not None and header.number <= last:
            logger.warning(
                "[%s] discarding header #%d at or below cursor #%d",
                self.chain,
                header.number,
                last,
            )
            return

        self.state = TrackerState.PROCESSING
        if last is not None and header.number > last + 1:
            logger.info(
                "[%s] filling gap #%d..#%d before #%d",
                self.chain,
                last + 1,
                header.number - 1,
                header.number,
            )
            for number in range(last + 1, header.number):
                missing = await self._client.get_header(number)
                await self._process(missing)
                if self._metrics:
                    self._metrics.block_backfilled(self.chain)
        await self._process(header)
        self.state = TrackerState.SUBSCRIBED

    async def _process(self, header: Header) -> None:
        if self._processor is None:
            msg = "tracker is not connected"
            raise RuntimeError(msg)
        await self._processor.process(header)
        self.last_block = header.number
