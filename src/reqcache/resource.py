"""Resource - staleness and dedup engine for one registered endpoint."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from copy import deepcopy
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from loguru import logger

from reqcache.constants import DEFAULT_CACHE_TTL, SUPPORTED_METHODS
from reqcache.errors import (
    AuthenticationRequiredError,
    MissingPathParamsError,
    RequestError,
    UnsupportedMethodError,
    is_status_success,
    normalize_error,
)
from reqcache.events import ChangeEvent
from reqcache.keys import build_cache_key, fill_path, missing_path_params
from reqcache.payload import Payload, rejected_future, resolved_future, track_future
from reqcache.store import EntryStore
from reqcache.types import CacheEntry, DataStatus, ModelInterface

if TYPE_CHECKING:
    from reqcache.api import ResourceAPI

_PENDING_STATUS = {
    "put": DataStatus.PENDING_PUT,
    "post": DataStatus.PENDING_POST,
    "delete": DataStatus.PENDING_DELETE,
}


def _decode(body: str | None) -> Any:
    """Decode a JSON response body. An empty body decodes to None."""
    if not body:
        return None
    return json.loads(body)


def _as_error(data: Any) -> RequestError:
    # Seeded failures may carry plain data instead of an exception.
    if isinstance(data, RequestError):
        return data
    return RequestError(str(data) if data is not None else "")


class Resource:
    """A registered endpoint template and the cache it owns.

    Only this class and the invalidation cascade write to ``cache``. Every
    decision in ``get`` runs synchronously, and a fetch's placeholder entry is
    installed before ``get`` returns, so a second query for the same key on
    the very next line already sees the in-flight fetch.
    """

    def __init__(
        self,
        *,
        id: str,
        endpoint: str,
        model: Any,
        api: ResourceAPI,
        time_until_stale: int = DEFAULT_CACHE_TTL,
        model_interface: ModelInterface | None = None,
        auth_required: bool = False,
        initial_cache: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> None:
        if not endpoint:
            raise ValueError("Could not add resource: endpoint must be specified")
        if time_until_stale < 0:
            raise ValueError("time_until_stale must not be negative")
        self.id = id
        self.endpoint = endpoint
        self.model = model
        self.api = api
        self.time_until_stale = time_until_stale
        self.model_interface = model_interface
        self.auth_required = auth_required
        self.cache = EntryStore(initial_cache)
        self._tasks: set[asyncio.Task[None]] = set()
        self._sweeps: dict[str, asyncio.TimerHandle] = {}

    def __repr__(self) -> str:
        return f"Resource(id={self.id!r}, endpoint={self.endpoint!r})"

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    def invalidate_cache(self) -> None:
        """Mark every entry stale without dropping its data."""
        count = self.cache.mark_all_stale()
        logger.debug("Invalidated {} entries of resource {}", count, self.id)

    def invalidate_cache_key(self, key: str) -> None:
        """Mark one entry stale without dropping its data."""
        if self.cache.mark_stale(key):
            logger.debug("Invalidated {} of resource {}", key, self.id)

    # -------------------------------------------------------------------------
    # Query entry point
    # -------------------------------------------------------------------------

    def get(
        self,
        *,
        query: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        method: str = "get",
        body: Any = None,
        force_refresh: bool = False,
        authenticated: bool = False,
        timeout: int | None = None,
        custom_hook_data: Any = None,
    ) -> Payload:
        """Answer a query from the cache, starting a request when needed."""
        method = method.lower()
        if method not in SUPPORTED_METHODS:
            raise UnsupportedMethodError(method)

        if self.auth_required and not authenticated:
            error: RequestError = AuthenticationRequiredError(self.id, self.endpoint)
            logger.warning(str(error))
            return self._rejected_request(error, custom_hook_data)

        missing = missing_path_params(self.endpoint, params)
        if missing:
            error = MissingPathParamsError(self.id, missing)
            logger.warning("{}; no request will be made", error)
            return self._rejected_request(error, custom_hook_data)

        request = _Request(
            path=fill_path(self.endpoint, params),
            key=build_cache_key(query, params, headers),
            query=query,
            headers={**self.api.auth_header, **(headers or {})},
            body=body,
            timeout=timeout if timeout is not None else self.api.timeout,
            custom_hook_data=custom_hook_data,
        )

        if method == "get":
            return self._get(request, force_refresh)

        return self._payload(
            _PENDING_STATUS[method],
            None,
            self._start(method, request),
            custom_hook_data,
            with_interface=False,
        )

    # -------------------------------------------------------------------------
    # GET state machine
    # -------------------------------------------------------------------------

    def _get(self, request: _Request, force_refresh: bool) -> Payload:
        entry = self.cache.get(request.key)
        hook = request.custom_hook_data

        if entry is None:
            return self._payload(
                DataStatus.EMPTY, self.model, self._fetch(request, None), hook
            )

        # A fetch is already in flight: share it.
        if entry.pending is not None and entry.success is not False:
            logger.debug("Joining in-flight fetch for {} {}", self.id, request.key)
            if entry.data is not None:
                return self._payload(DataStatus.STALE, entry.data, entry.pending, hook)
            return self._payload(DataStatus.EMPTY, self.model, entry.pending, hook)

        age = self._age(entry)

        if entry.success is False:
            if age < self.time_until_stale:
                error = _as_error(entry.data)
                return self._payload(
                    DataStatus.ERROR,
                    self.model,
                    rejected_future(error),
                    hook,
                    error=error,
                )
            # The failure has expired: the payload reflects the retry.
            return self._payload(
                DataStatus.EMPTY, self.model, self._fetch(request, entry), hook
            )

        if age < self.time_until_stale and not force_refresh:
            return self._payload(
                DataStatus.FRESH,
                entry.data,
                resolved_future(deepcopy(entry.data)),
                hook,
            )

        return self._payload(
            DataStatus.STALE, entry.data, self._fetch(request, entry), hook
        )

    def _age(self, entry: CacheEntry[Any]) -> int | float:
        if entry.timestamp is None or entry.invalidated:
            return float("inf")
        return self.api.now() - entry.timestamp

    def _fetch(
        self, request: _Request, previous: CacheEntry[Any] | None
    ) -> asyncio.Future[Any]:
        """Install the placeholder entry, then start the network call."""
        future = self._start("get", request)

        if previous is not None and previous.success:
            placeholder = CacheEntry(
                data=previous.data,
                timestamp=previous.timestamp,
                success=True,
                pending=future,
                invalidated=previous.invalidated,
            )
        else:
            placeholder = CacheEntry(pending=future)
        self.cache.set(request.key, placeholder)

        logger.debug("Fetching {} for resource {} ({})", request.path, self.id, request.key)
        return future

    # -------------------------------------------------------------------------
    # Request execution
    # -------------------------------------------------------------------------

    def _start(self, method: str, request: _Request) -> asyncio.Future[Any]:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = track_future(loop.create_future())
        task = loop.create_task(self._execute(method, request, future))
        self._tasks.add(task)

        def on_done(task: asyncio.Task[None]) -> None:
            self._tasks.discard(task)
            if task.cancelled():
                self._abandon(method, request, future)

        task.add_done_callback(on_done)
        return future

    async def _execute(
        self, method: str, request: _Request, future: asyncio.Future[Any]
    ) -> None:
        try:
            response = await self.api.transport.request(
                method,
                request.path,
                query=request.query,
                headers=request.headers,
                timeout=request.timeout,
                body=request.body if method in ("put", "post") else None,
            )
        except Exception as e:
            self._settle_failure(method, request, future, normalize_error(e))
            return

        status = response.status
        if not is_status_success(status):
            error = normalize_error(None, status, response.body)
            self._settle_failure(method, request, future, error)
            return

        if method == "delete":
            self._settle_success(method, request, future, {})
            return

        try:
            value = _decode(response.body)
        except ValueError as e:
            self._settle_failure(method, request, future, normalize_error(e, status))
            return

        self._settle_success(method, request, future, value)

    def _settle_success(
        self,
        method: str,
        request: _Request,
        future: asyncio.Future[Any],
        value: Any,
    ) -> None:
        if method == "get":
            # Waiters receive ``value``; the cache keeps its own copy.
            self.cache.set(
                request.key,
                CacheEntry(data=deepcopy(value), timestamp=self.api.now(), success=True),
            )
            self._schedule_sweep(request.key)

        if not future.done():
            future.set_result(value)
        self.api.notifier.emit(
            ChangeEvent(
                resource_id=self.id,
                payload=value,
                custom_hook_data=request.custom_hook_data,
            )
        )

    def _settle_failure(
        self,
        method: str,
        request: _Request,
        future: asyncio.Future[Any],
        error: RequestError,
    ) -> None:
        logger.debug(
            "{} {} failed for resource {}: {!r}",
            method.upper(),
            request.path,
            self.id,
            error,
        )
        if method == "get":
            # Drop first so no field of the pending entry survives.
            self.cache.delete(request.key)
            self.cache.set(
                request.key,
                CacheEntry(data=error, timestamp=self.api.now(), success=False),
            )
            self._schedule_sweep(request.key)

        if not future.done():
            future.set_exception(error)
        self.api.notifier.emit(
            ChangeEvent(
                resource_id=self.id,
                error=error,
                custom_hook_data=request.custom_hook_data,
            )
        )

    def _abandon(
        self, method: str, request: _Request, future: asyncio.Future[Any]
    ) -> None:
        """Undo a cancelled request's placeholder and cancel its future."""
        if method == "get":
            entry = self.cache.get(request.key)
            if entry is not None and entry.pending is future:
                if entry.timestamp is None:
                    self.cache.delete(request.key)
                else:
                    self.cache.set(request.key, replace(entry, pending=None))
                    self._schedule_sweep(request.key)
        future.cancel()

    async def close(self) -> None:
        """Cancel outstanding requests and pending sweeps."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.cancel_sweeps()

    # -------------------------------------------------------------------------
    # Sweep
    # -------------------------------------------------------------------------

    def _schedule_sweep(self, key: str) -> None:
        interval = self.api.sweep_interval
        if not interval or self.api.get_resource(self.id) is not self:
            return
        # Only the latest completion's timer may delete the entry.
        previous = self._sweeps.pop(key, None)
        if previous is not None:
            previous.cancel()
        self._sweeps[key] = asyncio.get_running_loop().call_later(
            interval / 1000, self._sweep, key
        )

    def cancel_sweeps(self) -> None:
        """Cancel every scheduled sweep of this resource."""
        for handle in self._sweeps.values():
            handle.cancel()
        self._sweeps.clear()

    def _sweep(self, key: str) -> None:
        self._sweeps.pop(key, None)
        entry = self.cache.get(key)
        # A newer fetch owns the entry now and schedules its own sweep.
        if entry is None or entry.pending is not None:
            return
        self.cache.delete(key)
        logger.debug("Swept {} from resource {}", key, self.id)

    # -------------------------------------------------------------------------
    # Payload construction
    # -------------------------------------------------------------------------

    def _payload(
        self,
        status: DataStatus,
        data: Any,
        result: asyncio.Future[Any],
        custom_hook_data: Any,
        *,
        error: BaseException | None = None,
        with_interface: bool = True,
    ) -> Payload:
        return Payload(
            status=status,
            data=data,
            result=result,
            error=error,
            model_interface=self.model_interface if with_interface else None,
            custom_hook_data=custom_hook_data,
            resource_id=self.id,
            api=self.api,
        )

    def _rejected_request(self, error: RequestError, custom_hook_data: Any) -> Payload:
        return self._payload(
            DataStatus.ERROR,
            self.model,
            resolved_future(deepcopy(self.model)),
            custom_hook_data,
            error=error,
        )


class _Request:
    """Everything needed to issue one request for a resource."""

    __slots__ = ("body", "custom_hook_data", "headers", "key", "path", "query", "timeout")

    def __init__(
        self,
        *,
        path: str,
        key: str,
        query: Mapping[str, Any] | None,
        headers: dict[str, str],
        body: Any,
        timeout: int,
        custom_hook_data: Any,
    ) -> None:
        self.path = path
        self.key = key
        self.query = query
        self.headers = headers
        self.body = body
        self.timeout = timeout
        self.custom_hook_data = custom_hook_data
