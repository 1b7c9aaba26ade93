"""ResourceAPI - registry of cached resources behind one remote location."""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from types import MappingProxyType, TracebackType
from typing import Any

from loguru import logger

from reqcache.constants import DEFAULT_CACHE_TTL, DEFAULT_REQUEST_TIMEOUT
from reqcache.duration import parse_duration, parse_optional_duration
from reqcache.errors import ResourceNotFoundError
from reqcache.events import ChangeEvent, ChangeNotifier, Listener
from reqcache.payload import Payload
from reqcache.resource import Resource
from reqcache.transports.base import Transport
from reqcache.transports.httpx import HttpxTransport
from reqcache.types import CacheSeed, Clock, Duration, ModelInterface


def _wall_clock() -> int:
    return int(time.time() * 1000)


class ResourceAPI:
    """Cached view of a remote HTTP API.

    Register resources once, then query them from inside a running event
    loop. ``query`` never blocks: it returns a Payload describing what the
    cache holds right now and carrying a future for the network result.

        api = ResourceAPI("https://api.example.com", timeout="10s")
        api.add_resource("USER", endpoint="/users/:username", model={})

        payload = api.query("USER", params={"username": "dase"})
        payload.status   # DataStatus.EMPTY on the first call
        await payload    # {"name": "Peter"}

    Listeners registered with ``subscribe`` are told about every settled
    request, cascade and auth change, so a UI layer knows when to re-render.
    """

    def __init__(
        self,
        location: str = "",
        *,
        id: str | None = None,
        timeout: Duration = DEFAULT_REQUEST_TIMEOUT,
        sweep_interval: Duration | None = None,
        initial_cache: CacheSeed | None = None,
        transport: Transport | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.id = id
        self.location = location
        self.timeout = parse_duration(timeout)
        self.sweep_interval = parse_optional_duration(sweep_interval)
        self.initial_cache: CacheSeed = initial_cache or {}
        if transport is None:
            transport = HttpxTransport(location, timeout=self.timeout)
        self.transport = transport
        self.notifier = ChangeNotifier()
        self._clock = clock or _wall_clock
        self._resources: dict[str, Resource] = {}
        self._auth_header: dict[str, str] = {}

    def __repr__(self) -> str:
        return f"ResourceAPI(location={self.location!r}, resources={list(self._resources)})"

    async def __aenter__(self) -> ResourceAPI:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def now(self) -> int:
        """Current time in milliseconds, from the configured clock."""
        return self._clock()

    # -------------------------------------------------------------------------
    # Resource registry
    # -------------------------------------------------------------------------

    def add_resource(
        self,
        id: str,
        *,
        endpoint: str,
        model: Any,
        time_until_stale: Duration = DEFAULT_CACHE_TTL,
        model_interface: ModelInterface | None = None,
        auth_required: bool = False,
    ) -> str:
        """Register an endpoint template such as ``/users/:username``.

        Entries for ``id`` in the API's initial cache seed the new resource.
        Re-registering an id replaces the old resource and its cache.
        """
        if id in self._resources:
            logger.warning("Replacing already registered resource {}", id)
            self._resources[id].cancel_sweeps()
        self._resources[id] = Resource(
            id=id,
            endpoint=endpoint,
            model=model,
            api=self,
            time_until_stale=parse_duration(time_until_stale),
            model_interface=model_interface,
            auth_required=auth_required,
            initial_cache=self.initial_cache.get(id),
        )
        logger.debug("Registered resource {} at {}", id, endpoint)
        return id

    def remove_resource(self, id: str) -> None:
        """Forget a resource. Its outstanding fetches complete and are discarded."""
        resource = self._resources.pop(id, None)
        if resource is not None:
            resource.cancel_sweeps()
            logger.debug("Removed resource {}", id)

    def get_resource(self, id: str) -> Resource | None:
        return self._resources.get(id)

    @property
    def resources(self) -> Mapping[str, Resource]:
        """Read-only view of registered resources."""
        return MappingProxyType(self._resources)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def query(
        self,
        id: str,
        *,
        query: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        method: str = "get",
        body: Any = None,
        force_refresh: bool = False,
        timeout: Duration | None = None,
        custom_hook_data: Any = None,
    ) -> Payload:
        """Query a registered resource.

        Args:
            id: Registered resource id
            query: Query-string parameters
            params: Values for the endpoint template's ``:placeholders``
            headers: Extra request headers (merged over the auth header)
            method: One of get, put, post, delete
            body: Request body for put and post, sent as JSON
            force_refresh: Refetch even if the cached data is still fresh
            timeout: Per-request timeout (default: the API timeout)
            custom_hook_data: Correlation value passed through to ChangeEvents

        Returns:
            Payload describing the cached state at call time

        Raises:
            ResourceNotFoundError: ``id`` was never registered
            UnsupportedMethodError: ``method`` is not a supported verb
        """
        resource = self._resources.get(id)
        if resource is None:
            raise ResourceNotFoundError(id)

        return resource.get(
            query=query,
            params=params,
            headers=headers,
            method=method,
            body=body,
            force_refresh=force_refresh,
            authenticated=self.is_authenticated,
            timeout=parse_optional_duration(timeout),
            custom_hook_data=custom_hook_data,
        )

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    @property
    def auth_header(self) -> dict[str, str]:
        return dict(self._auth_header)

    @property
    def is_authenticated(self) -> bool:
        return bool(self._auth_header)

    def set_auth_header(self, auth_header: Mapping[str, str]) -> None:
        """Send ``auth_header`` with every request and stale-out all caches."""
        self._auth_header = dict(auth_header)
        self.invalidate_all()

    def unset_auth_header(self) -> None:
        """Stop sending the auth header and stale-out all caches."""
        self._auth_header = {}
        self.invalidate_all()

    # -------------------------------------------------------------------------
    # Cache-wide operations
    # -------------------------------------------------------------------------

    def invalidate_all(self) -> None:
        """Mark every entry of every resource stale, keeping the data."""
        for resource in self._resources.values():
            resource.invalidate_cache()
        self.notifier.emit(ChangeEvent())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unsubscribes it."""
        return self.notifier.subscribe(listener)

    def dump_cache(self) -> dict[str, dict[str, dict[str, Any]]]:
        """Successful entries in the shape ``initial_cache`` accepts."""
        return {
            id: dumped
            for id, resource in self._resources.items()
            if (dumped := resource.cache.dump())
        }

    async def close(self) -> None:
        """Cancel outstanding requests and close the transport."""
        for resource in list(self._resources.values()):
            await resource.close()
        await self.transport.close()


def create_api(
    location: str = "",
    *,
    timeout: Duration = DEFAULT_REQUEST_TIMEOUT,
    sweep_interval: Duration | None = None,
    initial_cache: CacheSeed | None = None,
    transport: Transport | None = None,
    clock: Clock | None = None,
) -> ResourceAPI:
    """Create a ResourceAPI.

    Args:
        location: Base URL every endpoint template is appended to
        timeout: Default per-request timeout
        sweep_interval: Delete entries this long after their fetch completes
        initial_cache: Seed entries, keyed by resource id then cache key
        transport: Network transport (default: HttpxTransport on ``location``)
        clock: Millisecond clock, for tests

    Returns:
        ResourceAPI with no resources registered
    """
    return ResourceAPI(
        location,
        timeout=timeout,
        sweep_interval=sweep_interval,
        initial_cache=initial_cache,
        transport=transport,
        clock=clock,
    )


__all__ = ["ResourceAPI", "create_api"]
