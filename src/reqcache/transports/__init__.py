"""Network transports for reqcache (async only)."""

from reqcache.transports.base import Transport
from reqcache.transports.httpx import HttpxTransport

__all__ = [
    "HttpxTransport",
    "Transport",
]
