"""Engine: block processing, per-endpoint head tracking and the restart supervisor."""

from __future__ import annotations

from chainmon.engine.processor import BlockProcessor
from chainmon.engine.supervisor import Supervisor
from chainmon.engine.tracker import ChainHeadTracker, TrackerState

__all__ = ["BlockProcessor", "ChainHeadTracker", "Supervisor", "TrackerState"]
