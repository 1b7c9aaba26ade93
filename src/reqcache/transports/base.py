"""Base transport protocol."""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from reqcache.types import TransportResponse


@runtime_checkable
class Transport(Protocol):
    """Async transport interface.

    Implementations issue the HTTP call and report the raw status and body.
    Network failures and timeouts are raised; non-2xx statuses are returned.
    """

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
        """Issue one request. ``timeout`` is in milliseconds."""
        ...

    async def close(self) -> None:
        """Release connections held by the transport."""
        ...
