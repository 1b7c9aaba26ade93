"""Exceptions and error normalization."""

from __future__ import annotations

import json
from typing import Any

from reqcache.constants import GENERIC_DISPLAY_MESSAGE


class ReqCacheError(Exception):
    """Base exception for reqcache errors."""


class ResourceNotFoundError(ReqCacheError, KeyError):
    """A query named a resource id that was never registered."""

    def __init__(self, resource_id: str) -> None:
        self.resource_id = resource_id
        super().__init__(f"Resource {resource_id!r} was never initialized")

    def __str__(self) -> str:
        return str(self.args[0])


class UnsupportedMethodError(ReqCacheError, ValueError):
    """HTTP verb other than get, put, post or delete."""

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(
            f"Method must be one of 'get', 'post', 'put', 'delete', got {method!r}"
        )


class RequestError(ReqCacheError):
    """Normalized failure of a single request.

    Delivered through ``Payload.error`` and the payload's future, never raised
    from ``query()`` itself.
    """

    def __init__(
        self,
        message: str = "",
        *,
        status: int = -1,
        status_code: Any = None,
        display_message: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.message = message
        self.status = status
        self.status_code = status_code
        self.display_message = display_message or GENERIC_DISPLAY_MESSAGE
        self.cause = cause
        super().__init__(message or f"Request failed with status {status}")

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(status={self.status!r}, "
            f"status_code={self.status_code!r}, message={self.message!r})"
        )


class DecodeError(RequestError):
    """Response body could not be decoded as JSON."""


class MissingPathParamsError(RequestError):
    """Required path parameters were missing or None."""

    def __init__(self, resource_id: str, missing: list[str]) -> None:
        self.resource_id = resource_id
        self.missing = missing
        super().__init__(
            f"Path parameters {missing} were not fully specified for resource "
            f"{resource_id!r}"
        )


class AuthenticationRequiredError(RequestError):
    """Resource requires an auth header and none is set."""

    def __init__(self, resource_id: str, endpoint: str) -> None:
        self.resource_id = resource_id
        self.endpoint = endpoint
        super().__init__(
            f"Authentication required at endpoint {endpoint} for resource "
            f"{resource_id!r}",
            status=401,
        )


def is_status_success(status: int) -> bool:
    return 200 <= status < 300


def normalize_error(
    raw: BaseException | None,
    status: int = -1,
    body: str | None = None,
) -> RequestError:
    """Turn a transport exception or error response into a RequestError.

    A JSON object body may carry ``statusCode``, ``message`` and
    ``displayMessage``; anything else falls back to the raw exception text.
    """
    if isinstance(raw, RequestError):
        return raw

    content: dict[str, Any] = {}
    if body:
        try:
            parsed = json.loads(body)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            content = parsed

    message = content.get("message") or (str(raw) if raw is not None else "")
    error_cls = DecodeError if isinstance(raw, ValueError) else RequestError
    return error_cls(
        message,
        status=status,
        status_code=content.get("statusCode"),
        display_message=content.get("displayMessage"),
        cause=raw,
    )
