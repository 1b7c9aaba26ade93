"""httpx-backed transport."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from reqcache.constants import DEFAULT_REQUEST_TIMEOUT
from reqcache.types import TransportResponse


class HttpxTransport:
    """Async transport built on ``httpx.AsyncClient``.

    Bodies are sent as JSON. The caller's millisecond timeout is converted to
    the seconds httpx expects.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        client: httpx.AsyncClient | None = None,
        timeout: int = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers={"Accept": "application/json"},
            timeout=timeout / 1000,
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: int | None = None,
        body: Any = None,
    ) -> TransportResponse:
        """Issue one request and return its status and text body."""
        kwargs: dict[str, Any] = {}
        if body is not None:
            kwargs["json"] = body
        if timeout is not None:
            kwargs["timeout"] = timeout / 1000

        response = await self._client.request(
            method.upper(),
            path,
            params=dict(query) if query else None,
            headers=dict(headers) if headers else None,
            **kwargs,
        )
        return TransportResponse(
            status=response.status_code,
            body=response.text or None,
        )

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()
