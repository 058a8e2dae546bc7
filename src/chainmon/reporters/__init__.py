"""Reporters: delivery sinks for notification and status reports."""

from __future__ import annotations

from chainmon.reporters.base import Reporter, deliver, fan_out
from chainmon.reporters.batch import BatchReporter
from chainmon.reporters.console import ConsoleReporter
from chainmon.reporters.factory import build_reporters
from chainmon.reporters.fs import FileSystemReporter
from chainmon.reporters.mail import EmailReporter
from chainmon.reporters.matrix import MatrixReporter
from chainmon.reporters.telegram import TelegramReporter

__all__ = [
    "BatchReporter",
    "ConsoleReporter",
    "EmailReporter",
    "FileSystemReporter",
    "MatrixReporter",
    "Reporter",
    "TelegramReporter",
    "build_reporters",
    "deliver",
    "fan_out",
]
