"""Batch reporter: durable queuing and periodic flush around any reporter.

Queue file format: UTF-8 text, ``serialize_report(r) + SEPARATOR`` per entry.

Flush protocol:

1. Under the file lock, the queue file is renamed to ``<path>.inflight``
   (or appended to an in-flight file left by an interrupted flush). New
   reports land in a fresh queue file from then on.
2. The in-flight entries are delivered to the inner reporter.
3. Entries that could not be delivered are written back to the front of
   the queue, then the in-flight file is removed.

A crash anywhere in this window leaves the entries on disk, in the queue
or the in-flight file, and the next start picks them up again. Delivery is
therefore at-least-once.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from chainmon.errors.chainmon_errors import ReportDecodeError
from chainmon.reporters.base import Reporter, deliver
from chainmon.reports.models import SEPARATOR, StatusReport, deserialize_report, serialize_report
from chainmon.taskmanager.manager import CronJob, TaskManager

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chainmon.metrics.collector import MonitorMetrics
    from chainmon.reports.models import Report

logger = logging.getLogger(__name__)


def _split(text: str) -> list[str]:
    return [chunk for chunk in text.split(SEPARATOR) if chunk.strip()]


class BatchReporter(Reporter):
    """Wraps *inner* with a crash-safe on-disk queue.

    Args:
        inner: The reporter that finally delivers.
        interval: Flush period in seconds.
        storage_path: Queue file, owned exclusively by this instance.
        misc: Deliver ``StatusReport`` immediately instead of queuing, and
            announce every flush cycle with a status report.
        leftovers: On first start, resend entries left by a previous run
            instead of discarding them.
        tasks: Task manager to schedule the flush job on. A private one is
            created when omitted.
    """

    def __init__(
        self,
        inner: Reporter,
        *,
        interval: float,
        storage_path: str | Path,
        misc: bool = False,
        leftovers: bool = False,
        tasks: TaskManager | None = None,
        metrics: MonitorMetrics | None = None,
    ) -> None:
        self.inner = inner
        self.name = f"batch({inner.name})"
        self.interval = interval
        self.storage_path = Path(storage_path)
        self.inflight_path = self.storage_path.with_name(self.storage_path.name + ".inflight")
        self.misc = misc
        self.leftovers = leftovers
        self._owns_tasks = tasks is None
        self._tasks = tasks or TaskManager(metrics=metrics)
        self._metrics = metrics
        self._job_name = f"flush:{self.storage_path}"
        self._file_lock = asyncio.Lock()
        self._flush_lock = asyncio.Lock()
        self._recovery_pending = True
        self._started = False

        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        self.survivors = self._count_survivors()
        if self.survivors:
            logger.info(
                "found %d queued reports from a previous run in %s",
                self.survivors,
                self.storage_path,
            )

    @property
    def is_started(self) -> bool:
        return self._started

    # ------------------------------------------------------------------
    # Reporter interface
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Recover survivors (first start only) and schedule the flush job."""
        if self._started:
            return
        await self.inner.start()
        if self._recovery_pending:
            self._recovery_pending = False
            if self.leftovers:
                if self.survivors:
                    logger.warning(
                        "sending out %d old reports from %s", self.survivors, self.storage_path
                    )
                await self.flush()
            else:
                discarded = self._discard_survivors()
                if discarded:
                    logger.warning("ignoring %d old reports from %s", discarded, self.storage_path)

        self._tasks.register(self._job_name, CronJob(handler=self._tick, period=self.interval))
        if self._owns_tasks:
            await self._tasks.start()
        self._started = True
        logger.info("setting up batch reporter %s with interval %ss", self.name, self.interval)

    async def report(self, report: Report) -> None:
        """Queue *report*; status reports bypass the queue when ``misc`` is set."""
        if self.misc and isinstance(report, StatusReport):
            await self.inner.report(report)
            return
        packet = serialize_report(report)
        async with self._file_lock:
            self._write(self.storage_path, [packet], mode="a")
        logger.debug("⏰ enqueuing %s report for later", type(report).__name__)

    async def clean(self) -> None:
        """Stop flushing, deliver what is queued, and drop the queue file.

        Entries the inner reporter still refuses stay on disk for the next
        start.
        """
        await self._tasks.unregister(self._job_name)
        if self._owns_tasks:
            await self._tasks.stop()
        self._started = False
        await self.flush()
        async with self._file_lock:
            remaining = self._read_entries(self.storage_path)
            if remaining:
                logger.warning("%d reports left queued in %s", len(remaining), self.storage_path)
            else:
                self.storage_path.unlink(missing_ok=True)
        await self.inner.clean()

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    async def flush(self) -> int:
        """Deliver everything queued so far.

        Returns:
            Number of reports delivered.
        """
        async with self._flush_lock:
            async with self._file_lock:
                packets = self._take_inflight()
            if not packets:
                return 0

            reports: list[Report] = []
            for packet in packets:
                try:
                    reports.append(deserialize_report(packet))
                except ReportDecodeError:
                    logger.exception("dropping undecodable queue entry from %s", self.storage_path)

            failed = await self._deliver(reports)

            async with self._file_lock:
                if failed:
                    logger.warning(
                        "re-queueing %d undelivered reports for %s", len(failed), self.name
                    )
                    self._prepend([serialize_report(r) for r in failed])
                self.inflight_path.unlink(missing_ok=True)
            return len(reports) - len(failed)

    async def _tick(self) -> None:
        if self.misc:
            notice = StatusReport(message=f"flushing batches with interval {self.interval}s.")
            try:
                await self.inner.report(notice)
            except Exception:
                logger.exception("%s failed to deliver flush notice", self.name)
        await self.flush()

    async def _deliver(self, reports: Sequence[Report]) -> list[Report]:
        """Deliver to the inner reporter, returning the reports that failed."""
        if not reports:
            return []
        if self.inner.supports_group:
            try:
                await deliver(self.inner, reports)
            except Exception:
                logger.exception(
                    "%s failed to deliver a batch of %d", self.inner.name, len(reports)
                )
                self._count_failure()
                return list(reports)
            return []

        failed: list[Report] = []
        for report in reports:
            try:
                await self.inner.report(report)
            except Exception:
                logger.exception("%s failed to deliver a queued report", self.inner.name)
                self._count_failure()
                failed.append(report)
        return failed

    def _count_failure(self) -> None:
        if self._metrics:
            self._metrics.delivery_failed(self.inner.name)

    # ------------------------------------------------------------------
    # File handling (callers hold the file lock)
    # ------------------------------------------------------------------

    def _take_inflight(self) -> list[str]:
        """Move queued entries into the in-flight file and return all of them."""
        if self.storage_path.exists():
            if not self.inflight_path.exists():
                os.replace(self.storage_path, self.inflight_path)
            else:
                queued = self.storage_path.read_text(encoding="utf-8")
                if queued:
                    self._write(self.inflight_path, [queued], mode="a", separate=False)
                self.storage_path.unlink()
        return self._read_entries(self.inflight_path)

    def _prepend(self, packets: list[str]) -> None:
        current = ""
        if self.storage_path.exists():
            current = self.storage_path.read_text(encoding="utf-8")
        tmp = self.storage_path.with_name(self.storage_path.name + ".tmp")
        self._write(tmp, packets, mode="w")
        if current:
            self._write(tmp, [current], mode="a", separate=False)
        os.replace(tmp, self.storage_path)

    def _count_survivors(self) -> int:
        inflight = self._read_entries(self.inflight_path)
        return len(inflight) + len(self._read_entries(self.storage_path))

    def _discard_survivors(self) -> int:
        count = self._count_survivors()
        self.inflight_path.unlink(missing_ok=True)
        self.storage_path.unlink(missing_ok=True)
        return count

    @staticmethod
    def _read_entries(path: Path) -> list[str]:
        if not path.exists():
            return []
        return _split(path.read_text(encoding="utf-8"))

    @staticmethod
    def _write(path: Path, chunks: list[str], *, mode: str, separate: bool = True) -> None:
        with path.open(mode, encoding="utf-8") as fh:
            for chunk in chunks:
                fh.write(chunk + SEPARATOR if separate else chunk)
            fh.flush()
            os.fsync(fh.fileno())
