"""File system reporter: append the plain text rendering to a file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from chainmon.reporters.base import Reporter
from chainmon.reports.templates import render_raw

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chainmon.config.settings import FsConfig
    from chainmon.reports.models import Report

logger = logging.getLogger(__name__)


class FileSystemReporter(Reporter):
    """Appends one line per report to ``config.path``."""

    name = "fs"
    supports_group = True

    def __init__(self, config: FsConfig) -> None:
        self.path = Path(config.path)
        logger.info("✅ [%s] registering file system reporter at %s", self.name, self.path)

    async def report(self, report: Report) -> None:
        self._append([report])

    async def group_report(self, reports: Sequence[Report]) -> None:
        self._append(reports)

    def _append(self, reports: Sequence[Report]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as fh:
            for report in reports:
                # one physical line per report
                fh.write(render_raw(report).replace("\n", " ") + "\n")
