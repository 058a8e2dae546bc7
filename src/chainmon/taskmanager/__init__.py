"""Task manager: periodic background jobs on asyncio tasks.

Used by the batch reporter to flush its durable queue on a fixed interval.
"""

from __future__ import annotations

from chainmon.taskmanager.manager import CronJob, TaskManager

__all__ = ["CronJob", "TaskManager"]
