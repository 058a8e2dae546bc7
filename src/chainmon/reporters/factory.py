"""Build the configured reporters."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from chainmon.reporters.batch import BatchReporter
from chainmon.reporters.console import ConsoleReporter
from chainmon.reporters.fs import FileSystemReporter
from chainmon.reporters.mail import EmailReporter
from chainmon.reporters.matrix import MatrixReporter
from chainmon.reporters.telegram import TelegramReporter

if TYPE_CHECKING:
    from chainmon.config.settings import AppConfig, BatchConfig
    from chainmon.metrics.collector import MonitorMetrics
    from chainmon.reporters.base import Reporter
    from chainmon.taskmanager.manager import TaskManager

logger = logging.getLogger(__name__)


def _wrap(
    reporter: Reporter,
    batch: BatchConfig | None,
    storage_dir: Path,
    *,
    tasks: TaskManager | None,
    metrics: MonitorMetrics | None,
) -> Reporter:
    if batch is None:
        return reporter
    return BatchReporter(
        reporter,
        interval=batch.interval,
        storage_path=storage_dir / f"{reporter.name}.batch",
        misc=batch.misc,
        leftovers=batch.leftovers,
        tasks=tasks,
        metrics=metrics,
    )


def build_reporters(
    config: AppConfig,
    *,
    tasks: TaskManager | None = None,
    metrics: MonitorMetrics | None = None,
) -> list[Reporter]:
    """Create every reporter enabled in ``config.reporters``.

    Reporters with a ``batch`` section are wrapped in a ``BatchReporter``
    whose queue lives in ``config.storage_dir``.

    Raises:
        ConfigError: If a reporter cannot be set up (e.g. a bad PGP key).
    """
    section = config.reporters
    storage_dir = Path(config.storage_dir)
    reporters: list[Reporter] = []

    def add(reporter: Reporter, batch: BatchConfig | None) -> None:
        reporters.append(_wrap(reporter, batch, storage_dir, tasks=tasks, metrics=metrics))
        logger.info("reporter %s enabled%s", reporter.name, " (batched)" if batch else "")

    if section.console is not None:
        add(ConsoleReporter(), section.console.batch)
    if section.fs is not None:
        add(FileSystemReporter(section.fs), section.fs.batch)
    if section.email is not None:
        add(EmailReporter(section.email), section.email.batch)
    if section.matrix is not None:
        add(MatrixReporter(section.matrix), section.matrix.batch)
    if section.telegram is not None:
        add(TelegramReporter(section.telegram), section.telegram.batch)

    if not reporters:
        logger.warning("no reporters configured; notifications will be dropped")
    return reporters
