"""Block processor: fetch a block's activity, match it and dispatch the report."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from chainmon.matching.accounts import NoMatch, match_event, match_extrinsic
from chainmon.matching.subscription import allows
from chainmon.reporters.base import fan_out
from chainmon.reports.models import ActivityItem, ActivityKind, NotificationReport

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from chainmon.chain.client import ChainClient
    from chainmon.chain.models import Event, Extrinsic, Header
    from chainmon.matching.accounts import WatchedAccount
    from chainmon.matching.subscription import AllMethods, IgnoreMethods, OnlyMethods
    from chainmon.metrics.collector import MonitorMetrics
    from chainmon.reporters.base import Reporter

logger = logging.getLogger(__name__)


class BlockProcessor:
    """Turns one block header into at most one ``NotificationReport``.

    Args:
        client: Connected chain client.
        chain: Chain name used in reports and metrics labels.
        accounts: Resolved watch-list; empty means every occurrence matches.
        subscription: Method subscription policy applied to every match.
        reporters: Reporters that receive each non-empty report.
        metrics: Optional metrics sink.
    """

    def __init__(
        self,
        client: ChainClient,
        chain: str,
        accounts: Sequence[WatchedAccount],
        subscription: AllMethods | OnlyMethods | IgnoreMethods,
        reporters: Sequence[Reporter],
        metrics: MonitorMetrics | None = None,
    ) -> None:
        self._client = client
        self.chain = chain
        self.accounts = tuple(accounts)
        self.subscription = subscription
        self._reporters = list(reporters)
        self._metrics = metrics

    async def build_report(self, header: Header) -> NotificationReport | None:
        """Collect the matched activity of *header*'s block.

        Returns:
            The report, or None when nothing in the block is of interest.

        Raises:
            ChainError: If the block body, events or timestamp cannot be fetched.
        """
        fetches = [
            asyncio.create_task(self._client.get_extrinsics(header.hash)),
            asyncio.create_task(self._client.get_events(header.hash)),
            asyncio.create_task(self._client.get_timestamp(header.hash)),
        ]
        try:
            extrinsics, events, timestamp = await asyncio.gather(*fetches)
        except BaseException:
            for fetch in fetches:
                fetch.cancel()
            await asyncio.gather(*fetches, return_exceptions=True)
            raise

        items: list[ActivityItem] = []
        for extrinsic in extrinsics:
            item = self._guarded(self._extrinsic_item, extrinsic, header)
            if item is not None:
                items.append(item)
        for event in events:
            item = self._guarded(self._event_item, event, header)
            if item is not None:
                items.append(item)

        if not items:
            return None
        return NotificationReport(
            chain=self.chain,
            block_number=header.number,
            block_hash=header.hash,
            timestamp=timestamp,
            items=tuple(items),
        )

    async def process(self, header: Header) -> NotificationReport | None:
        """Build the block's report and hand it to every reporter.

        Delivery failures are logged per reporter and never raised.
        """
        if self._metrics:
            with self._metrics.track_block(self.chain):
                report = await self._process(header)
            self._metrics.block_processed(self.chain, header.number)
        else:
            report = await self._process(header)
        return report

    async def _process(self, header: Header) -> NotificationReport | None:
        report = await self.build_report(header)
        if report is None:
            logger.debug("[%s] block #%d: nothing to report", self.chain, header.number)
            return None
        logger.info(
            "[%s] block #%d: dispatching %d items", self.chain, header.number, len(report.items)
        )
        failed = await fan_out(self._reporters, report, metrics=self._metrics)
        if failed:
            logger.warning("[%s] block #%d not delivered by %s", self.chain, header.number, failed)
        if self._metrics:
            self._metrics.report_dispatched(self.chain)
        return report

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def _guarded(
        self,
        build: Callable[[Any], ActivityItem | None],
        occurrence: Extrinsic | Event,
        header: Header,
    ) -> ActivityItem | None:
        try:
            return build(occurrence)
        except Exception:
            logger.exception(
                "[%s] block #%d: skipping unprocessable %s.%s",
                self.chain,
                header.number,
                occurrence.pallet,
                occurrence.method,
            )
            return None

    def _extrinsic_item(self, extrinsic: Extrinsic) -> ActivityItem | None:
        outcome = match_extrinsic(extrinsic, self.accounts)
        if isinstance(outcome, NoMatch):
            return None
        if not allows(extrinsic.pallet, extrinsic.method, self.subscription):
            return None
        return ActivityItem(
            kind=ActivityKind.EXTRINSIC,
            pallet=extrinsic.pallet,
            method=extrinsic.method,
            account=outcome.account,
            payload=extrinsic.args,
            signer=extrinsic.signer,
            nonce=extrinsic.nonce,
            index=extrinsic.index,
        )

    def _event_item(self, event: Event) -> ActivityItem | None:
        outcome = match_event(event, self.accounts)
        if isinstance(outcome, NoMatch):
            return None
        if not allows(event.pallet, event.method, self.subscription):
            return None
        return ActivityItem(
            kind=ActivityKind.EVENT,
            pallet=event.pallet,
            method=event.method,
            account=outcome.account,
            payload=event.data,
        )
