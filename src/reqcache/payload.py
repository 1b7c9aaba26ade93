"""Payload - the immutable result object handed back by every query."""

from __future__ import annotations

import asyncio
from collections.abc import Generator
from copy import deepcopy
from functools import partial
from typing import TYPE_CHECKING, Any

from loguru import logger

from reqcache.events import ChangeEvent
from reqcache.keys import build_cache_key
from reqcache.types import DataStatus, ModelInterface, ResourceDescriptor

if TYPE_CHECKING:
    from reqcache.api import ResourceAPI


def _retrieve_exception(future: asyncio.Future[Any]) -> None:
    # Abandoned payloads are normal; keep asyncio from logging their errors.
    if not future.cancelled():
        future.exception()


def track_future(future: asyncio.Future[Any]) -> asyncio.Future[Any]:
    """Mark a future's eventual exception as retrieved."""
    future.add_done_callback(_retrieve_exception)
    return future


def resolved_future(value: Any) -> asyncio.Future[Any]:
    """A future that has already resolved with ``value``."""
    future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future


def rejected_future(error: BaseException) -> asyncio.Future[Any]:
    """A future that has already failed with ``error``."""
    future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
    future.set_exception(error)
    return track_future(future)


class Payload:
    """A read of one cache entry (or one mutation) at call time.

    Status, data and error never change after construction. Awaiting the
    payload yields the authoritative response, or raises the normalized
    RequestError:

        payload = api.query("USER", params={"username": "dase"})
        payload.status        # DataStatus.EMPTY
        user = await payload  # {"name": "Peter"}

    Mutation payloads can schedule invalidation of other entries, applied
    only once the mutation succeeds:

        api.query("USER", method="put", params=..., body=...) \\
            .affects_resource(ResourceDescriptor("USER", params=...)) \\
            .invalidates_resource("USER_LIST")
    """

    __slots__ = (
        "_affected",
        "_api",
        "_cascade_registered",
        "_data",
        "_error",
        "_interface",
        "_invalidated",
        "_result",
        "_status",
        "custom_hook_data",
        "resource_id",
    )

    def __init__(
        self,
        *,
        status: DataStatus,
        data: Any,
        result: asyncio.Future[Any],
        error: BaseException | None = None,
        model_interface: ModelInterface | None = None,
        custom_hook_data: Any = None,
        resource_id: str | None = None,
        api: ResourceAPI | None = None,
    ) -> None:
        self._status = status
        # A snapshot, so callers mutating it never touch the cache or the model.
        self._data = deepcopy(data)
        self._result = result
        self._error = error if status is DataStatus.ERROR else None
        self._interface = model_interface(self._data) if model_interface else None
        self._api = api
        self._affected: dict[tuple[str, str], ResourceDescriptor] = {}
        self._invalidated: list[str] = []
        self._cascade_registered = False
        self.custom_hook_data = custom_hook_data
        self.resource_id = resource_id

    def __repr__(self) -> str:
        return f"Payload(status={self._status.name}, data={self._data!r})"

    def __await__(self) -> Generator[Any, None, Any]:
        # Shielded: a cancelled waiter must not cancel a fetch other callers share.
        return asyncio.shield(self._result).__await__()

    @property
    def status(self) -> DataStatus:
        return self._status

    @property
    def data(self) -> Any:
        """Best available value: server data or the resource's default model."""
        return self._data

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def result(self) -> asyncio.Future[Any]:
        """Future for the authoritative decoded response."""
        return self._result

    @property
    def interface(self) -> Any:
        """The resource's model interface applied to ``data``, if configured."""
        return self._interface

    @property
    def has_server_data(self) -> bool:
        return self._status in (DataStatus.FRESH, DataStatus.STALE)

    @property
    def is_pending(self) -> bool:
        return self._status in (DataStatus.EMPTY, DataStatus.STALE)

    @property
    def is_empty(self) -> bool:
        return self._status is DataStatus.EMPTY

    @property
    def is_fresh(self) -> bool:
        return self._status is DataStatus.FRESH

    @property
    def is_stale(self) -> bool:
        return self._status is DataStatus.STALE

    @property
    def is_valid(self) -> bool:
        return self._status is not DataStatus.ERROR

    # -------------------------------------------------------------------------
    # Invalidation cascade
    # -------------------------------------------------------------------------

    def affects_resource(self, descriptor: ResourceDescriptor) -> Payload:
        """Stale-out one cache entry once this payload's request succeeds."""
        key = build_cache_key(descriptor.query, descriptor.params, descriptor.headers)
        self._register_cascade()
        self._affected.setdefault((descriptor.id, key), descriptor)
        return self

    def invalidates_resource(self, resource_id: str) -> Payload:
        """Stale-out a whole resource's cache once this request succeeds."""
        self._register_cascade()
        if resource_id not in self._invalidated:
            self._invalidated.append(resource_id)
        return self

    def _register_cascade(self) -> None:
        if self._api is None:
            raise RuntimeError("Payload is not attached to an API; cannot cascade")
        if not self._cascade_registered:
            self._cascade_registered = True
            self._result.add_done_callback(partial(self._run_cascade, self._api))

    def _run_cascade(self, api: ResourceAPI, future: asyncio.Future[Any]) -> None:
        if future.cancelled() or future.exception() is not None:
            return

        for resource_id, key in self._affected:
            resource = api.get_resource(resource_id)
            if resource is None:
                logger.warning(
                    "Cannot invalidate entry of unknown resource {}", resource_id
                )
                continue
            resource.invalidate_cache_key(key)

        for resource_id in self._invalidated:
            resource = api.get_resource(resource_id)
            if resource is None:
                logger.warning("Cannot invalidate unknown resource {}", resource_id)
                continue
            resource.invalidate_cache()

        api.notifier.emit(
            ChangeEvent(
                resource_id=self.resource_id,
                payload=future.result(),
                custom_hook_data=self.custom_hook_data,
            )
        )


def empty_payload(model: Any, model_interface: ModelInterface | None = None) -> Payload:
    """An EMPTY payload whose future resolves to ``model``.

    Useful as a placeholder before the first query is issued.
    """
    return Payload(
        status=DataStatus.EMPTY,
        data=model,
        result=resolved_future(deepcopy(model)),
        model_interface=model_interface,
    )
