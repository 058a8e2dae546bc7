"""Console reporter: print the plain text rendering to stdout."""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, TextIO

from chainmon.reporters.base import Reporter
from chainmon.reports.templates import render_raw

if TYPE_CHECKING:
    from chainmon.reports.models import Report

logger = logging.getLogger(__name__)


class ConsoleReporter(Reporter):
    """Writes one rendered report per call to a text stream."""

    name = "console"

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream
        logger.info("✅ [%s] registering console reporter", self.name)

    async def report(self, report: Report) -> None:
        stream = self._stream or sys.stdout
        print(render_raw(report), file=stream, flush=True)
