"""Reporter interface and dispatch helpers.

A reporter delivers reports to one sink. ``group_report`` is optional
(``supports_group``); reporters without it receive itemized ``report``
calls. ``start`` / ``clean`` bracket the reporter's lifetime.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chainmon.metrics.collector import MonitorMetrics
    from chainmon.reports.models import Report

logger = logging.getLogger(__name__)


class Reporter(ABC):
    """Abstract delivery sink."""

    name: str = "reporter"
    supports_group: bool = False

    @abstractmethod
    async def report(self, report: Report) -> None:
        """Deliver a single report."""

    async def group_report(self, reports: Sequence[Report]) -> None:
        """Deliver several reports at once (only if ``supports_group``)."""
        raise NotImplementedError(f"{self.name} does not support group reports")

    async def start(self) -> None:  # noqa: B027
        """Acquire resources before the first report."""

    async def clean(self) -> None:  # noqa: B027
        """Release resources; called on restart and on shutdown."""


async def deliver(reporter: Reporter, reports: Sequence[Report]) -> None:
    """Deliver *reports* grouped when supported, else one by one."""
    if not reports:
        return
    if reporter.supports_group:
        await reporter.group_report(reports)
        return
    for report in reports:
        await reporter.report(report)


async def fan_out(
    reporters: Sequence[Reporter],
    report: Report,
    *,
    metrics: MonitorMetrics | None = None,
) -> list[str]:
    """Send *report* to every reporter concurrently.

    A failing reporter is logged and does not affect the others.

    Returns:
        Names of the reporters that failed.
    """

    async def _one(reporter: Reporter) -> str | None:
        try:
            await reporter.report(report)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Reporter %s failed to deliver report", reporter.name)
            if metrics:
                metrics.delivery_failed(reporter.name)
            return reporter.name
        return None

    results = await asyncio.gather(*(_one(r) for r in reporters))
    return [name for name in results if name is not None]
