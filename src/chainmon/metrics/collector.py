"""Metrics collector: Prometheus counters, gauges, histograms.

- ``chainmon_blocks_processed_total`` counter-vec (chain)
- ``chainmon_blocks_backfilled_total`` counter-vec (chain)
- ``chainmon_reports_total`` counter-vec (chain)
- ``chainmon_delivery_failures_total`` counter-vec (reporter)
- ``chainmon_restarts_total`` counter
- ``chainmon_last_block`` gauge-vec (chain)
- ``chainmon_block_processing_seconds`` histogram-vec (chain)
- ``chainmon_job_seconds`` / ``chainmon_job_last_execution`` (job_name)
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator


_PREFIX = "chainmon"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`MonitorMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class MonitorMetrics:
    """High-level metrics for the block-stream pipeline."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._blocks = self._collector.counter(
            f"{_PREFIX}_blocks_processed",
            "Blocks matched by the pipeline",
            ("chain",),
        )
        self._backfilled = self._collector.counter(
            f"{_PREFIX}_blocks_backfilled",
            "Skipped blocks fetched to fill a gap in the header stream",
            ("chain",),
        )
        self._reports = self._collector.counter(
            f"{_PREFIX}_reports",
            "Notification reports dispatched",
            ("chain",),
        )
        self._delivery_failures = self._collector.counter(
            f"{_PREFIX}_delivery_failures",
            "Failed deliveries per reporter",
            ("reporter",),
        )
        self._restarts = self._collector.counter(
            f"{_PREFIX}_restarts",
            "Supervisor restarts after a tracker failure",
        )
        self._last_block = self._collector.gauge(
            f"{_PREFIX}_last_block",
            "Last processed block number",
            ("chain",),
        )
        self._block_seconds = self._collector.histogram(
            f"{_PREFIX}_block_processing_seconds",
            "Duration of per-block fetch, match and dispatch",
            ("chain",),
        )
        self._job_histogram = self._collector.histogram(
            f"{_PREFIX}_job_seconds",
            "Duration of periodic job executions",
            ("job_name",),
        )
        self._job_last = self._collector.gauge(
            f"{_PREFIX}_job_last_execution",
            "Timestamp of last periodic job execution",
            ("job_name",),
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    # -- Counters --

    def block_processed(self, chain: str, number: int) -> None:
        """Count a processed block and move the last-block gauge."""
        self._blocks.labels(chain=chain).inc()
        self._last_block.labels(chain=chain).set(number)

    def block_backfilled(self, chain: str) -> None:
        self._backfilled.labels(chain=chain).inc()

    def report_dispatched(self, chain: str) -> None:
        self._reports.labels(chain=chain).inc()

    def delivery_failed(self, reporter: str) -> None:
        self._delivery_failures.labels(reporter=reporter).inc()

    def restarted(self) -> None:
        self._restarts.inc()

    # -- Duration trackers (context managers) --

    @contextmanager
    def track_block(self, chain: str) -> Iterator[None]:
        """Track the duration of processing one block."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._block_seconds.labels(chain=chain).observe(time.monotonic() - start)

    @contextmanager
    def track_job(self, job_name: str) -> Iterator[None]:
        """Track the duration of a periodic job and record last execution time."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._job_histogram.labels(job_name=job_name).observe(time.monotonic() - start)
            self._job_last.labels(job_name=job_name).set(time.time())
