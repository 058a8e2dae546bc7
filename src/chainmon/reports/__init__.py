"""Reports: notification payloads, codec and templates."""

from __future__ import annotations

from chainmon.reports.models import (
    SEPARATOR,
    ActivityItem,
    ActivityKind,
    NotificationReport,
    Report,
    StatusReport,
    deserialize_report,
    serialize_report,
)

__all__ = [
    "SEPARATOR",
    "ActivityItem",
    "ActivityKind",
    "NotificationReport",
    "Report",
    "StatusReport",
    "deserialize_report",
    "serialize_report",
]
