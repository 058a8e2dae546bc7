"""Matrix reporter: post HTML messages to a room via the client-server API."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING
from urllib.parse import quote

from chainmon.reporters.http_sink import HttpReporter
from chainmon.reports.templates import render_html

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chainmon.config.settings import MatrixConfig
    from chainmon.reports.models import Report

logger = logging.getLogger(__name__)


class MatrixReporter(HttpReporter):
    """Sends each report as an ``m.room.message`` event."""

    name = "matrix"
    supports_group = True

    def __init__(self, config: MatrixConfig, **kwargs: object) -> None:
        super().__init__(
            config.server,
            headers={"Authorization": f"Bearer {config.access_token}"},
            **kwargs,  # type: ignore[arg-type]
        )
        self.room_id = config.room_id
        logger.info(
            "✅ [%s] registering matrix reporter from %s to %s@%s",
            self.name,
            config.user_id,
            self.room_id,
            config.server,
        )

    async def report(self, report: Report) -> None:
        await self._send(render_html(report))

    async def group_report(self, reports: Sequence[Report]) -> None:
        await self._send("\n</br>\n".join(render_html(r) for r in reports))

    async def _send(self, html_body: str) -> None:
        room = quote(self.room_id, safe="")
        txn_id = uuid.uuid4().hex
        content = {
            "msgtype": "m.text",
            "body": html_body,
            "format": "org.matrix.custom.html",
            "formatted_body": html_body,
        }
        await self._request(
            "PUT",
            f"/_matrix/client/v3/rooms/{room}/send/m.room.message/{txn_id}",
            json=content,
        )
