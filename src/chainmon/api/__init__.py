"""API: health probe and metrics endpoints."""

from __future__ import annotations

from chainmon.api.app import HealthState, create_app, serve

__all__ = ["HealthState", "create_app", "serve"]
