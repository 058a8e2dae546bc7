"""Shared HTTP plumbing for chat reporters: client lifecycle and retries."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from chainmon.errors.chainmon_errors import DeliveryError
from chainmon.reporters.base import Reporter

logger = logging.getLogger(__name__)

MAX_RETRIES = 2
RETRY_DELAY = 1.0  # seconds
REQUEST_TIMEOUT = 10.0


class HttpReporter(Reporter):
    """Reporter that talks to a JSON HTTP API with ``httpx``.

    Subclasses call :meth:`_request`; a request is retried ``max_retries``
    times on transport errors and 5xx/429 responses. Exhausted retries and
    other non-2xx responses raise ``DeliveryError``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = headers or {}
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._client: httpx.AsyncClient | None = None

    @property
    def is_started(self) -> bool:
        return self._client is not None

    async def start(self) -> None:
        """Create the underlying HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=REQUEST_TIMEOUT,
            )

    async def clean(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, url: str, *, json: dict[str, Any]) -> httpx.Response:
        client = self._ensure_started()
        last_error = ""
        for attempt in range(self._max_retries + 1):
            try:
                resp = await client.request(method, url, json=json)
            except httpx.HTTPError as exc:
                last_error = str(exc) or type(exc).__name__
                logger.warning(
                    "[%s] request error: %s (attempt %d/%d)",
                    self.name,
                    last_error,
                    attempt + 1,
                    self._max_retries + 1,
                )
            else:
                if resp.status_code < 400:
                    return resp
                last_error = f"HTTP {resp.status_code}: {resp.text[:200]}"
                if resp.status_code != 429 and resp.status_code < 500:
                    msg = f"{self.name} rejected report: {last_error}"
                    raise DeliveryError(msg, reporter=self.name)
                logger.warning(
                    "[%s] returned %d (attempt %d/%d)",
                    self.name,
                    resp.status_code,
                    attempt + 1,
                    self._max_retries + 1,
                )
            if attempt < self._max_retries:
                await asyncio.sleep(self._retry_delay)

        raise DeliveryError(f"{self.name} delivery failed: {last_error}", reporter=self.name)

    def _ensure_started(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = f"{self.name} reporter not started. Call start() first."
            raise DeliveryError(msg, reporter=self.name)
        return self._client
