"""Per-resource cache entry store."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from copy import deepcopy
from dataclasses import replace
from typing import Any

from reqcache.types import CacheEntry


class EntryStore:
    """In-memory mapping from cache key to CacheEntry.

    Pure data: no I/O, no locking. Entries are frozen and replaced on every
    change, so a reader never sees a half-updated entry.
    """

    def __init__(self, seed: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._entries: dict[str, CacheEntry[Any]] = {}
        if seed:
            self.load(seed)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def get(self, key: str) -> CacheEntry[Any] | None:
        """Get a cache entry by key."""
        return self._entries.get(key)

    def set(self, key: str, entry: CacheEntry[Any]) -> None:
        """Store a cache entry, replacing any previous one."""
        self._entries[key] = entry

    def delete(self, key: str) -> None:
        """Delete a cache entry."""
        self._entries.pop(key, None)

    def mark_stale(self, key: str) -> bool:
        """Flag an entry as invalidated, keeping its data and timestamp."""
        entry = self._entries.get(key)
        if entry is None or entry.timestamp is None:
            return False
        self._entries[key] = replace(entry, invalidated=True)
        return True

    def mark_all_stale(self) -> int:
        """Stale-out every completed entry. Returns how many were touched."""
        return sum(self.mark_stale(key) for key in list(self._entries))

    def load(self, seed: Mapping[str, Mapping[str, Any]]) -> None:
        """Rehydrate entries from ``{key: {"data", "timestamp", "success"}}``.

        An optional ``"invalidated"`` flag is honoured as well.
        """
        for key, leaf in seed.items():
            self._entries[key] = CacheEntry(
                data=leaf.get("data"),
                timestamp=leaf.get("timestamp"),
                success=leaf.get("success"),
                invalidated=bool(leaf.get("invalidated", False)),
            )

    def dump(self) -> dict[str, dict[str, Any]]:
        """Snapshot of completed successful entries in the seed shape."""
        dumped: dict[str, dict[str, Any]] = {}
        for key, entry in self._entries.items():
            if not entry.success or entry.timestamp is None:
                continue
            leaf = {
                "data": deepcopy(entry.data),
                "timestamp": entry.timestamp,
                "success": True,
            }
            if entry.invalidated:
                leaf["invalidated"] = True
            dumped[key] = leaf
        return dumped
