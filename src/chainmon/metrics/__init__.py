"""Metrics: Prometheus metrics collection and exposure."""

from __future__ import annotations

from chainmon.metrics.collector import MetricsCollector, MonitorMetrics

__all__ = ["MetricsCollector", "MonitorMetrics"]
