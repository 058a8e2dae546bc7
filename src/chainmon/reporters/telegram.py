"""Telegram reporter: post Markdown messages through the Bot API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chainmon.errors.chainmon_errors import DeliveryError
from chainmon.reporters.http_sink import HttpReporter
from chainmon.reports.templates import render_markdown

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chainmon.config.settings import TelegramConfig
    from chainmon.reports.models import Report

logger = logging.getLogger(__name__)

MAX_MESSAGE_LEN = 1024


def chunk_text(text: str, size: int = MAX_MESSAGE_LEN) -> list[str]:
    """Split *text* into pieces of at most *size* characters."""
    return [text[i : i + size] for i in range(0, len(text), size)] or [""]


class TelegramReporter(HttpReporter):
    """Sends reports to one chat, chunked at ``max_len`` characters."""

    name = "telegram"
    supports_group = True

    def __init__(
        self, config: TelegramConfig, *, max_len: int = MAX_MESSAGE_LEN, **kwargs: object
    ) -> None:
        base_url = f"{config.api_url}/bot{config.bot_token}"
        super().__init__(base_url, **kwargs)  # type: ignore[arg-type]
        self.chat_id = config.chat_id
        self.max_len = max_len
        logger.info("✅ [%s] registering telegram reporter to chat %s", self.name, self.chat_id)

    async def report(self, report: Report) -> None:
        await self._send(render_markdown(report))

    async def group_report(self, reports: Sequence[Report]) -> None:
        await self._send("\n---\n".join(render_markdown(r) for r in reports))

    async def _send(self, text: str) -> None:
        for chunk in chunk_text(text, self.max_len):
            resp = await self._request(
                "POST",
                "/sendMessage",
                json={"chat_id": self.chat_id, "text": chunk, "parse_mode": "Markdown"},
            )
            body = resp.json()
            if not body.get("ok", False):
                msg = f"telegram rejected message: {body.get('description', 'unknown error')}"
                raise DeliveryError(msg, reporter=self.name)
