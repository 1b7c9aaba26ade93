"""Core types for reqcache."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

# "30s", "5m", "2h", "1d", a timedelta, or milliseconds
Duration = str | int | timedelta

# Returns the current time in milliseconds
Clock = Callable[[], int]

# Applied to payload data at construction time (e.g. a model wrapper class)
ModelInterface = Callable[[Any], Any]

# Persisted cache: resource id -> cache key -> {"data", "timestamp", "success"}
CacheSeed = Mapping[str, Mapping[str, Mapping[str, Any]]]


class DataStatus(Enum):
    """Status of the data carried by a Payload."""

    EMPTY = "EMPTY"
    FRESH = "FRESH"
    STALE = "STALE"
    PENDING_PUT = "PENDING_PUT"
    PENDING_POST = "PENDING_POST"
    PENDING_DELETE = "PENDING_DELETE"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """Last attempt and result for one cache key.

    ``data`` holds the normalized error when ``success`` is False.
    ``timestamp`` and ``success`` stay None until a fetch completes.
    ``invalidated`` makes the next read treat the entry as expired,
    whatever the clock reads.
    """

    data: T | None = None
    timestamp: int | None = None  # Unix timestamp ms
    success: bool | None = None
    pending: asyncio.Future[Any] | None = None
    invalidated: bool = False


@dataclass(frozen=True, slots=True)
class TransportResponse:
    """Raw response handed back by a transport."""

    status: int
    body: str | None = None


@dataclass(frozen=True)
class ResourceDescriptor:
    """Identifies one cache entry of a registered resource."""

    id: str
    query: Mapping[str, Any] | None = None
    params: Mapping[str, Any] | None = None
    headers: Mapping[str, str] | None = None
