"""Shared httpx client lifecycle for the HTTP-backed variants."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from datastore_mcp.connectors.interface import DataSource
from datastore_mcp.errors import BackendError

logger = logging.getLogger(__name__)

ERROR_BODY_EXCERPT_CHARS = 500


class HTTPDataSource(DataSource):
    """Base for REST and GraphQL: one ``httpx.AsyncClient`` per tool call."""

    _client: httpx.AsyncClient | None = None

    def merged_headers(self, extra: Mapping[str, Any] | None = None) -> dict[str, str]:
        """Connection headers overlaid with per-request headers."""
        headers = {str(k): str(v) for k, v in dict(self.options.get("headers") or {}).items()}
        headers.update({str(k): str(v) for k, v in dict(extra or {}).items()})
        return headers

    def client_kwargs(self) -> dict[str, Any]:
        timeouts = self.settings.timeouts
        return {
            "timeout": httpx.Timeout(
                self.option_seconds("timeout", timeouts.request_seconds),
                connect=timeouts.connect_seconds,
            ),
            "verify": bool(self.options.get("verifySsl", True)),
            "follow_redirects": True,
        }

    async def _connect(self) -> None:
        self._client = httpx.AsyncClient(**self.client_kwargs())

    async def _close(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(f"{self!r} is not connected")
        return self._client

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: Any = None,
    ) -> httpx.Response:
        """Send one request; HTTP errors and status >= 400 raise BackendError."""
        kwargs: dict[str, Any] = {"headers": dict(headers or {})}
        if isinstance(body, str | bytes):
            kwargs["content"] = body
        elif body is not None:
            kwargs["json"] = body

        logger.debug("%s %s (%s)", method, url, self.descriptor.id)
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise BackendError(f"{method} {url} failed: {e}") from e

        if response.status_code >= 400:
            excerpt = response.text[:ERROR_BODY_EXCERPT_CHARS]
            raise BackendError(
                f"{method} {url} returned HTTP {response.status_code}: {excerpt}"
            )
        return response
