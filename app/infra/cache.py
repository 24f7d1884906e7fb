"""In-memory TTL caches for Spotify responses."""

from __future__ import annotations

import time
from typing import Any, Callable

from app.infra.config import settings


class MemoryCache:
    """TTL-based in-memory cache backed by a dict.

    Expired entries are dropped lazily on read. When the map grows past
    ``max_entries`` the whole map is cleared before the next insert; there is
    no per-entry eviction.
    """

    def __init__(
        self,
        default_ttl: int = 300,
        max_entries: int = 500,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store: dict[str, tuple[Any, float]] = {}
        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._clock = clock

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        return key in self._store

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() > expires_at:
            del self._store[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl = ttl if ttl is not None else self._default_ttl
        if len(self._store) > self._max_entries:
            self._store.clear()
        self._store[key] = (value, self._clock() + ttl)

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()


def make_key(namespace: str, operation: str, *params: object) -> str:
    """Build a ``{namespace}:{operation}:{params...}`` cache key."""
    return ":".join([namespace, operation, *(str(p) for p in params)])


def normalize_query(query: str) -> str:
    return query.strip().lower()


search_cache = MemoryCache(
    default_ttl=settings.search_cache_ttl, max_entries=settings.cache_max_entries
)
album_cache = MemoryCache(
    default_ttl=settings.album_cache_ttl, max_entries=settings.cache_max_entries
)
