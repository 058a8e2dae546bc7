"""Process supervisor: run one tracker per endpoint and restart them all on failure.

Each cycle starts the reporters, announces the (re)start with a status
report and runs a ``ChainHeadTracker`` per configured endpoint. The first
tracker to fail tears the whole cycle down: the remaining trackers are
cancelled, every reporter is cleaned, and after a backoff delay the next
cycle reconnects to all endpoints.

The delay starts at ``retry.initial`` seconds and doubles up to
``retry.maximum``. A cycle that stayed up longer than ``retry.maximum``
resets it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from chainmon.config.settings import ApiSubscription
from chainmon.engine.tracker import ChainHeadTracker, TrackerState
from chainmon.errors.chain_errors import SubscriptionError
from chainmon.reporters.base import fan_out
from chainmon.reports.models import StatusReport

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from chainmon.api.app import HealthState
    from chainmon.chain.client import ChainClient
    from chainmon.config.settings import AppConfig
    from chainmon.metrics.collector import MonitorMetrics
    from chainmon.reporters.base import Reporter

logger = logging.getLogger(__name__)

_READY_STATES = frozenset({TrackerState.SUBSCRIBED, TrackerState.PROCESSING})


class Supervisor:
    """Owns the restart loop around all endpoint trackers.

    Args:
        config: Validated application config.
        reporters: Reporters shared by every tracker.
        client_factory: Builds a fresh (unconnected) client for an endpoint URL.
        config_name: Name used in the restart status report.
        health: Readiness flag exposed by the health probe.
        metrics: Optional metrics sink.
        sleep: Backoff sleep, replaceable in tests.
        clock: Monotonic clock, replaceable in tests.
    """

    def __init__(
        self,
        config: AppConfig,
        reporters: Sequence[Reporter],
        client_factory: Callable[[str], ChainClient],
        *,
        config_name: str = "chainmon",
        health: HealthState | None = None,
        metrics: MonitorMetrics | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._reporters = list(reporters)
        self._client_factory = client_factory
        self.config_name = config_name
        self._health = health
        self._metrics = metrics
        self._sleep = sleep
        self._clock = clock
        self._trackers: list[ChainHeadTracker] = []
        self._reporters_started = False
        self._stopping = False
        self._runner: asyncio.Task[None] | None = None
        self.cycles = 0

    @property
    def trackers(self) -> list[ChainHeadTracker]:
        """Trackers of the current cycle."""
        return list(self._trackers)

    @property
    def is_ready(self) -> bool:
        """True while every tracker of the current cycle is subscribed."""
        return bool(self._trackers) and all(t.state in _READY_STATES for t in self._trackers)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Run cycles until :meth:`stop` / :meth:`shutdown` is called.

        Reporters are cleaned before this returns.
        """
        self._runner = asyncio.current_task()
        retry = self._config.retry
        delay = retry.initial
        try:
            while not self._stopping:
                started = self._clock()
                try:
                    await self._run_cycle()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.exception("trackers stopped: %s", exc)

                await self._clean_reporters()
                if self._metrics:
                    self._metrics.restarted()
                if self._clock() - started > retry.maximum:
                    delay = retry.initial
                logger.info("restarting in %.1fs", delay)
                await self._sleep(delay)
                delay = min(delay * 2, retry.maximum)
        except asyncio.CancelledError:
            if not self._stopping:
                raise
        finally:
            if self._health:
                self._health.clear()
            await self._clean_reporters()
            logger.info("supervisor stopped")

    def stop(self) -> None:
        """Request shutdown; safe to call from a signal handler."""
        if self._stopping:
            return
        logger.info("shutdown requested")
        self._stopping = True
        if self._runner is not None and not self._runner.done():
            self._runner.cancel()

    async def shutdown(self) -> None:
        """Request shutdown and wait until trackers and reporters are cleaned up."""
        self.stop()
        if self._runner is not None and self._runner is not asyncio.current_task():
            await asyncio.gather(self._runner, return_exceptions=True)

    # ------------------------------------------------------------------
    # One cycle
    # ------------------------------------------------------------------

    async def _run_cycle(self) -> None:
        self.cycles += 1
        await self._start_reporters()
        restarted = StatusReport(message=f"program {self.config_name} restarted")
        await fan_out(self._reporters, restarted, metrics=self._metrics)

        finalized = self._config.api_subscription is ApiSubscription.FINALIZED
        self._trackers = [
            ChainHeadTracker(
                self._client_factory(endpoint),
                self._config,
                self._reporters,
                finalized=finalized,
                metrics=self._metrics,
            )
            for endpoint in self._config.endpoints
        ]
        tasks = [
            asyncio.create_task(tracker.run(), name=f"tracker:{tracker.endpoint}")
            for tracker in self._trackers
        ]
        if self._health:
            self._health.bind(lambda: self.is_ready)

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if self._health:
                self._health.clear()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        failed = done.pop()
        exc = failed.exception()
        if exc is not None:
            raise exc
        msg = f"{failed.get_name()} returned unexpectedly"
        raise SubscriptionError(msg)

    async def _start_reporters(self) -> None:
        if self._reporters_started:
            return
        self._reporters_started = True
        await asyncio.gather(*(r.start() for r in self._reporters))

    async def _clean_reporters(self) -> None:
        if not self._reporters_started:
            return
        self._reporters_started = False
        for reporter in self._reporters:
            try:
                await reporter.clean()
            except Exception:
                logger.exception("failed to clean reporter %s", reporter.name)
