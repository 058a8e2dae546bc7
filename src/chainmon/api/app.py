"""FastAPI application factory: health probe and Prometheus metrics."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest
from starlette.responses import Response

from chainmon import __version__

if TYPE_CHECKING:
    from collections.abc import Callable

    from chainmon.metrics.collector import MonitorMetrics

logger = logging.getLogger(__name__)


class HealthState:
    """Readiness flag shared between the supervisor and the health probe.

    The supervisor binds a check while trackers are running and clears it
    when they stop; an unbound state is never ready.
    """

    def __init__(self) -> None:
        self._check: Callable[[], bool] | None = None

    def bind(self, check: Callable[[], bool]) -> None:
        self._check = check

    def clear(self) -> None:
        self._check = None

    @property
    def is_ready(self) -> bool:
        return self._check is not None and self._check()


def create_app(*, health: HealthState, metrics: MonitorMetrics | None = None) -> FastAPI:
    """Build and return the probe application.

    Args:
        health: Readiness state reported by ``GET /health``.
        metrics: Metrics whose registry ``GET /metrics`` exposes. The default
            process registry is used when omitted.
    """
    app = FastAPI(
        title="py-chainmon",
        version=__version__,
        description="Substrate chain activity monitor",
        docs_url=None,
        redoc_url=None,
    )
    app.state.health = health
    app.state.metrics = metrics

    @app.get("/health", tags=["base"])
    async def health_endpoint() -> JSONResponse:
        if app.state.health.is_ready:
            return JSONResponse(status_code=200, content={"status": "ok"})
        return JSONResponse(status_code=503, content={"status": "not ready"})

    @app.get("/metrics", tags=["base"], include_in_schema=False)
    async def metrics_endpoint() -> Response:
        """Prometheus metrics endpoint."""
        registry = app.state.metrics.registry if app.state.metrics is not None else None
        body = generate_latest(registry) if registry else generate_latest()
        return Response(
            content=body,
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    return app


async def serve(app: FastAPI, *, host: str, port: int) -> None:
    """Serve *app* on the running event loop until cancelled."""
    config = uvicorn.Config(app, host=host, port=port, log_level="warning", lifespan="off")
    server = uvicorn.Server(config)
    logger.info("health probe listening on http://%s:%d/health", host, port)
    await server.serve()
