"""Shared pytest fixtures."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest

from reqcache import ResourceAPI, TransportResponse


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = 0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@dataclass
class Call:
    method: str
    path: str
    query: Any
    headers: Any
    timeout: Any
    body: Any


@dataclass
class FakeTransport:
    """Scripted transport.

    Responses (or exceptions) are queued with ``respond``/``fail`` and handed
    out in order. While ``hold()`` is in effect requests wait until
    ``release()``, so tests can observe in-flight state.
    """

    calls: list[Call] = field(default_factory=list)
    responses: list[TransportResponse | BaseException] = field(default_factory=list)
    closed: bool = False
    _gate: asyncio.Event | None = None

    def respond(self, status: int = 200, body: str | None = None) -> None:
        self.responses.append(TransportResponse(status=status, body=body))

    def fail(self, error: BaseException) -> None:
        self.responses.append(error)

    def hold(self) -> None:
        self._gate = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()

    async def request(
        self,
        method: str,
        path: str,
        *,
        query: Any = None,
        headers: Any = None,
        timeout: Any = None,
        body: Any = None,
    ) -> TransportResponse:
        self.calls.append(Call(method, path, query, headers, timeout, body))
        if self._gate is not None:
            await self._gate.wait()
        response = self.responses.pop(0) if self.responses else TransportResponse(200, "{}")
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    """A fake clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def transport() -> FakeTransport:
    """A fresh FakeTransport for each test."""
    return FakeTransport()


@pytest.fixture
def api(transport: FakeTransport, clock: FakeClock) -> ResourceAPI:
    """A ResourceAPI with USER and USER_LIST resources registered."""
    api = ResourceAPI("http://localhost:3000", transport=transport, clock=clock)
    api.add_resource("USER", endpoint="/users/:username", model={}, time_until_stale="60s")
    api.add_resource("USER_LIST", endpoint="/users", model=[], time_until_stale="60s")
    return api
