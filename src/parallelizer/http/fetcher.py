"""Async HTTP client issuing one JSON request under a hard timeout."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from parallelizer.errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 8_000
DEFAULT_USER_AGENT = "Parallelizer/0.1 (+https://github.com/parallelizer/parallelizer)"


class BoundedFetcher:
    """httpx.AsyncClient wrapper where every request is aborted once its timeout elapses."""

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        base_headers = {"User-Agent": user_agent}
        if headers:
            base_headers.update(headers)
        # The per-request bound comes from asyncio.wait_for, not from httpx phase timeouts.
        self._client = httpx.AsyncClient(
            timeout=None,
            headers=base_headers,
            transport=transport,
            follow_redirects=True,
        )

    async def fetch_json(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        body: Any = None,
        timeout_ms: int | None = DEFAULT_TIMEOUT_MS,
    ) -> Any:
        """Issue one request and return the decoded JSON body.

        A ``timeout_ms`` of ``None`` or ``0`` leaves the request unbounded.
        Non-2xx statuses are not errors here: callers decide completion
        from the body. An empty body is not sent.
        """

        request = self._client.request(
            method,
            url,
            headers=dict(headers or {}),
            json=body if body else None,
        )
        timeout_seconds = timeout_ms / 1000 if timeout_ms else None
        try:
            response = await asyncio.wait_for(request, timeout=timeout_seconds)
        except TimeoutError as exc:
            logger.warning("Timeout after %sms fetching %s", timeout_ms, url)
            raise FetchError(
                f"Request to {url} timed out after {timeout_ms}ms",
                url=url,
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("HTTP error fetching %s: %s", url, exc)
            raise FetchError(f"Request to {url} failed: {exc}", url=url) from exc

        logger.debug("Fetched %s %s -> %d", method, url, response.status_code)
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Invalid JSON body from %s (HTTP %d)", url, response.status_code)
            raise FetchError(
                f"Response from {url} is not valid JSON (HTTP {response.status_code})",
                url=url,
            ) from exc

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> BoundedFetcher:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()
