"""reqcache - client-side request cache for remote HTTP resources.

Logging goes through loguru and is disabled by default; enable it with
``logger.enable("reqcache")``.
"""

from loguru import logger

# API
from reqcache.api import ResourceAPI, create_api

# Duration parsing
from reqcache.duration import parse_duration

# Errors
from reqcache.errors import (
    AuthenticationRequiredError,
    DecodeError,
    MissingPathParamsError,
    ReqCacheError,
    RequestError,
    ResourceNotFoundError,
    UnsupportedMethodError,
    normalize_error,
)

# Notifications
from reqcache.events import ChangeEvent, ChangeNotifier

# Cache key
from reqcache.keys import build_cache_key

# Result objects
from reqcache.payload import Payload, empty_payload
from reqcache.resource import Resource
from reqcache.store import EntryStore

# Transports
from reqcache.transports import HttpxTransport, Transport

# Core types
from reqcache.types import (
    CacheEntry,
    DataStatus,
    Duration,
    ResourceDescriptor,
    TransportResponse,
)

logger.disable("reqcache")

__version__ = "0.1.0"

__all__ = [
    "AuthenticationRequiredError",
    "CacheEntry",
    "ChangeEvent",
    "ChangeNotifier",
    "DataStatus",
    "DecodeError",
    "Duration",
    "EntryStore",
    "HttpxTransport",
    "MissingPathParamsError",
    "Payload",
    "ReqCacheError",
    "RequestError",
    "Resource",
    "ResourceAPI",
    "ResourceDescriptor",
    "ResourceNotFoundError",
    "Transport",
    "TransportResponse",
    "UnsupportedMethodError",
    "build_cache_key",
    "create_api",
    "empty_payload",
    "normalize_error",
    "parse_duration",
]
