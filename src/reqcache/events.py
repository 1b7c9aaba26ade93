"""Change notifications for UI layers."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from reqcache.errors import RequestError


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """Something in the cache changed and views may need re-rendering.

    ``payload`` carries the decoded response on success, ``error`` the
    normalized error on failure. Both are None for bulk stale-outs.
    """

    resource_id: str | None = None
    payload: Any = None
    error: RequestError | None = None
    custom_hook_data: Any = None


Listener = Callable[[ChangeEvent], None]


class ChangeNotifier:
    """Observer list the cache pushes ChangeEvents into."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: ChangeEvent) -> None:
        """Deliver an event to every listener.

        A failing listener is logged and does not stop delivery to the rest.
        """
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Change listener {!r} failed for resource {}",
                    listener,
                    event.resource_id,
                )
