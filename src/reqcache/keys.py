"""Cache key construction and endpoint template helpers."""

import json
import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from reqcache.constants import CACHE_KEY_PREFIX

_PLACEHOLDER_PATTERN = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def _canonical(component: Mapping[str, Any]) -> str:
    return json.dumps(component, sort_keys=True, separators=(",", ":"), default=str)


def build_cache_key(
    query: Mapping[str, Any] | None = None,
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, Any] | None = None,
) -> str:
    """Build the cache key for one query shape.

    Components are serialized in a fixed order with sorted keys, so two
    structurally equal requests always share a key. Each component is
    labelled, so a dict passed as ``query`` never collides with the same dict
    passed as ``params``.

    Example:
        build_cache_key(params={"username": "dase"})
        # 'CACHEKEY-params={"username":"dase"}'
    """
    parts = [
        f"{name}={_canonical(component)}"
        for name, component in (("query", query), ("params", params), ("headers", headers))
        if component is not None
    ]
    return CACHE_KEY_PREFIX + "|".join(parts)


def template_params(endpoint: str) -> list[str]:
    """Names of the ``:placeholder`` segments in an endpoint template."""
    return _PLACEHOLDER_PATTERN.findall(endpoint)


def missing_path_params(endpoint: str, params: Mapping[str, Any] | None) -> list[str]:
    """Return required or supplied path params that are absent or None."""
    params = params or {}
    missing = [name for name in template_params(endpoint) if params.get(name) is None]
    missing.extend(
        name for name, value in params.items() if value is None and name not in missing
    )
    return missing


def fill_path(endpoint: str, params: Mapping[str, Any] | None) -> str:
    """Substitute ``:name`` placeholders with URL-quoted param values."""
    if not params:
        return endpoint

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in params:
            return match.group(0)
        return quote(str(params[name]), safe="")

    return _PLACEHOLDER_PATTERN.sub(replace, endpoint)
