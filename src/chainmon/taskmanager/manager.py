"""Task manager lifecycle: start, stop, schedule.

The ``TaskManager`` owns a set of ``CronJob`` definitions and runs each on
its own asyncio task. A job waits ``period`` seconds, runs its handler, and
repeats; a failing handler is logged and the loop carries on. Handlers of a
single job never overlap because the loop awaits each run.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from chainmon.metrics.collector import MonitorMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CronJob:
    """A recurring background job."""

    handler: Callable[[], Awaitable[object]]
    period: float  # seconds
    name: str = ""


class TaskManager:
    """Manages asyncio-based cron jobs.

    Usage::

        tm = TaskManager(metrics=monitor_metrics)
        tm.register("flush", CronJob(handler=..., period=60))
        await tm.start()
        ...
        await tm.stop()
    """

    def __init__(self, *, metrics: MonitorMetrics | None = None) -> None:
        self._jobs: dict[str, CronJob] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._running = False
        self._metrics = metrics

    @property
    def is_running(self) -> bool:
        """Whether the task manager is currently running."""
        return self._running

    @property
    def jobs(self) -> dict[str, CronJob]:
        """Registered jobs (name → CronJob)."""
        return dict(self._jobs)

    def register(self, name: str, job: CronJob) -> None:
        """Register a cron job.  Can be called before or after start().

        If the manager is already running the job is started immediately.
        """
        resolved = CronJob(handler=job.handler, period=job.period, name=name)
        self._jobs[name] = resolved
        if self._running:
            self._tasks[name] = asyncio.create_task(self._run_loop(resolved))

    async def unregister(self, name: str) -> None:
        """Remove a job, cancelling its loop if it is running."""
        self._jobs.pop(name, None)
        task = self._tasks.pop(name, None)
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def start(self) -> None:
        """Start all registered cron jobs."""
        if self._running:
            return
        self._running = True
        for name, job in self._jobs.items():
            self._tasks[name] = asyncio.create_task(self._run_loop(job))
        logger.debug("TaskManager started with %d jobs", len(self._jobs))

    async def stop(self) -> None:
        """Cancel all running jobs and wait for cleanup."""
        if not self._running:
            return
        self._running = False
        for task in self._tasks.values():
            task.cancel()
        results = await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        for r in results:
            if isinstance(r, Exception) and not isinstance(r, asyncio.CancelledError):
                logger.error("Task error during shutdown: %s", r)
        self._tasks.clear()
        logger.debug("TaskManager stopped")

    async def _run_loop(self, job: CronJob) -> None:
        """Repeatedly execute *job* every *job.period* seconds."""
        name = job.name or "unnamed"
        while self._running:
            try:
                await asyncio.sleep(job.period)
                if not self._running:
                    break
                if self._metrics:
                    with self._metrics.track_job(name):
                        await job.handler()
                else:
                    await job.handler()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Cron job %r failed", name)
