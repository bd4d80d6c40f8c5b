"""In-memory TTL cache for expensive tool lookups.

Caches at the data-source level (not the tool level) so several tools benefit
from one GitHub API call or one local aggregate query.

The cache is TTL-agnostic; callers pick a preset from :class:`TTL`. Eviction is
lazy: an expired entry stays in the map until it is overwritten or explicitly
invalidated.

Concurrent misses on the same key are not de-duplicated. Two callers missing at
the same time both run ``compute`` and the later store wins.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class TTL:
    """TTL presets in milliseconds."""

    # GitHub API data: issues, PRs, issue bodies.
    GITHUB = 5 * 60 * 1000
    # Git log derived data.
    GIT = 2 * 60 * 1000
    # Local aggregate queries: board, analytics.
    DB = 30 * 1000
    # Expensive derived computations.
    COMPUTED = 60 * 1000


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    value: T
    expires_at: float

    def is_active(self, now: float) -> bool:
        return self.expires_at > now


@dataclass(frozen=True, slots=True)
class CacheStats:
    entries: int
    active_entries: int
    keys: list[str]

    def to_json(self) -> dict[str, object]:
        return {
            "entries": self.entries,
            "activeEntries": self.active_entries,
            "keys": list(self.keys),
        }


class ExpiringCache:
    """Process-local key/value memo with per-entry expiry.

    Keys are opaque strings, conventionally ``namespace:discriminator`` so that
    :meth:`invalidate_prefix` can drop a whole namespace.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._store: dict[str, CacheEntry[Any]] = {}

    def get_or_compute(self, key: str, ttl_ms: int, compute: Callable[[], T]) -> T:
        """Return the active entry for ``key`` or compute, store and return it.

        A failing ``compute`` propagates unchanged and stores nothing.
        """

        with self._lock:
            existing = self._store.get(key)
            if existing is not None and existing.is_active(self._clock()):
                return existing.value

        value = compute()

        entry = CacheEntry(value=value, expires_at=self._clock() + ttl_ms / 1000.0)
        with self._lock:
            self._store[key] = entry
        return value

    def invalidate_all(self) -> None:
        with self._lock:
            self._store.clear()

    def invalidate_prefix(self, prefix: str) -> None:
        with self._lock:
            for key in [k for k in self._store if k.startswith(prefix)]:
                del self._store[key]

    def stats(self) -> CacheStats:
        with self._lock:
            now = self._clock()
            active = sum(1 for entry in self._store.values() if entry.is_active(now))
            return CacheStats(entries=len(self._store), active_entries=active, keys=list(self._store))
