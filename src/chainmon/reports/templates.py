"""Text renderings of reports for the different sinks.

- ``render_raw``: plain text for console / file sinks
- ``render_markdown``: Telegram
- ``render_html``: email and Matrix
- ``render_json``: machine consumers
"""

from __future__ import annotations

import html
import json
import logging
from typing import TYPE_CHECKING, Any

from chainmon.reports.models import NotificationReport, StatusReport, serialize_report

if TYPE_CHECKING:
    from collections.abc import Callable

    from chainmon.reports.models import ActivityItem, Report

logger = logging.getLogger(__name__)

MAX_FORMATTED_MSG_LEN = 256
PRIMARY_COLOR = "#a3e4d7"


def trim(value: str, limit: int = MAX_FORMATTED_MSG_LEN) -> str:
    """Shorten *value* to ``head..tail`` when longer than *limit*."""
    if len(value) < limit:
        return value
    half = limit // 2
    return f"{value[:half]}..{value[-half:]}"


def subscan_url(report: NotificationReport) -> str:
    """Block explorer link for a notification."""
    return f"https://{report.chain.lower()}.subscan.io/block/{report.block_number}"


def format_payload(payload: Any) -> str:
    """Render an item payload as a bracketed, trimmed list."""
    if payload is None:
        values: list[Any] = []
    elif isinstance(payload, dict):
        values = list(payload.values())
    elif isinstance(payload, list | tuple):
        values = list(payload)
    else:
        values = [payload]
    parts = [trim(v if isinstance(v, str) else json.dumps(v, default=str)) for v in values]
    return f"[{', '.join(parts)}]"


def _render_items(
    report: NotificationReport, render: Callable[[ActivityItem], str]
) -> list[str]:
    lines: list[str] = []
    for item in report.items:
        try:
            lines.append(render(item))
        except Exception:
            logger.exception(
                "Failed to format %s.%s at #%d", item.pallet, item.method, report.block_number
            )
            lines.append(f"⚠️ unformattable {item.kind} {item.pallet}.{item.method}")
    return lines


def account_label(item: ActivityItem) -> str:
    """``label (address)`` for a matched account, empty for wildcard matches."""
    if item.is_wildcard:
        return ""
    account = item.account
    if account.label:  # type: ignore[union-attr]
        return f"{account.label} ({account.address})"  # type: ignore[union-attr]
    return account.address  # type: ignore[union-attr]


def _status_text(report: StatusReport) -> str:
    return f"💌 Status message: {report.message} at {report.time.isoformat(timespec='seconds')}"


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def render_raw(report: Report) -> str:
    """Plain text rendering."""
    if isinstance(report, StatusReport):
        return _status_text(report)

    def _item(item: ActivityItem) -> str:
        who = f"for {account_label(item)}" if not item.is_wildcard else ""
        return (
            f"\n\t🧾 {item.kind} {who} |"
            f"\n\t💻 pallet: {item.pallet} - method: {item.method}"
            f"\n\t💽 data: {format_payload(item.payload)}"
        )

    body = "".join(_render_items(report, _item))
    return f"🎤 Events at #{report.block_number}: {body} ({subscan_url(report)})"


def render_markdown(report: Report) -> str:
    """Markdown rendering."""
    if isinstance(report, StatusReport):
        return _status_text(report)

    def _item(item: ActivityItem) -> str:
        who = f"for **{account_label(item)}**" if not item.is_wildcard else ""
        return (
            f"\n\t🧾 _{item.kind}_ {who}"
            f"\n\t💻 pallet: *{item.pallet}* - method: *{item.method}*"
            f"\n\t💽 data: `{format_payload(item.payload)}`"
        )

    body = "".join(_render_items(report, _item))
    return f"🎤 Events at [#{report.block_number}]({subscan_url(report)}): {body}"


def render_html(report: Report) -> str:
    """HTML rendering."""
    if isinstance(report, StatusReport):
        return f"<p>{html.escape(_status_text(report))}</p>"

    def _bold(text: str) -> str:
        return f'<b style="background-color: {PRIMARY_COLOR}">{html.escape(text)}</b>'

    def _item(item: ActivityItem) -> str:
        who = (
            ""
            if item.is_wildcard
            else f"for {_bold(item.account.label)} "  # type: ignore[union-attr]
            f"({html.escape(item.account.address)}) "  # type: ignore[union-attr]
        )
        return (
            f"<li>💻 type: {item.kind} | {who}"
            f"pallet: {_bold(item.pallet)} | method: {_bold(item.method)} | "
            f"data: {html.escape(format_payload(item.payload))}</li>"
        )

    items = "\n".join(_render_items(report, _item))
    when = report.block_time.strftime("%H:%M:%S %Z")
    return (
        f"<p><p>📣 <b>Notification</b> at {_bold(report.chain)} "
        f"#<a href='{subscan_url(report)}'>{report.block_number}</a> aka {when}</p>\n"
        f"<ul>\n{items}\n</ul></p>\n"
        f"<details><summary>Raw details</summary>"
        f"<code>{html.escape(render_json(report))}</code></details>"
    )


def render_json(report: Report) -> str:
    """JSON rendering (the queue serialization)."""
    return serialize_report(report)
