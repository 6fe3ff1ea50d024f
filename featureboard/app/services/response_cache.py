"""Read-through cache for read endpoints, invalidated by tag and by path."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    key: str
    value: Any
    tags: frozenset[str]
    path: str | None
    created_at: float
    expires_at: float
    hit_count: int = 0


@dataclass
class CacheStats:
    total_entries: int
    hit_count: int
    miss_count: int
    eviction_count: int
    invalidation_count: int
    hit_rate: float
    # Tags with a fill in flight
    tracked_tags: int = 0


@dataclass
class ResponseCache:
    """In-process payload cache keyed by string.

    Each entry carries tags and optionally the request path it was built for,
    so writers can drop every affected view without knowing the exact keys.
    Invalidating an unknown tag or path is a no-op.
    """

    max_entries: int = 1000
    ttl_seconds: float = 300
    clock: Callable[[], float] = time.monotonic

    _entries: dict[str, CacheEntry] = field(default_factory=dict, init=False)
    _by_tag: dict[str, set[str]] = field(default_factory=dict, init=False)
    _by_path: dict[str, set[str]] = field(default_factory=dict, init=False)
    # Only tags with a fill in flight are tracked; see get_or_load
    _generations: dict[str, int] = field(default_factory=dict, init=False)
    _inflight: dict[str, int] = field(default_factory=dict, init=False)
    _hits: int = field(default=0, init=False)
    _misses: int = field(default=0, init=False)
    _evictions: int = field(default=0, init=False)
    _invalidations: int = field(default=0, init=False)

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self.clock() >= entry.expires_at:
            self._remove(key)
            self._misses += 1
            return None
        entry.hit_count += 1
        self._hits += 1
        return entry.value

    def put(
        self,
        key: str,
        value: Any,
        *,
        tags: Iterable[str] = (),
        path: str | None = None,
        ttl: float | None = None,
    ) -> None:
        if key in self._entries:
            self._remove(key)
        elif len(self._entries) >= self.max_entries:
            self._evict_oldest()

        now = self.clock()
        entry = CacheEntry(
            key=key,
            value=value,
            tags=frozenset(tags),
            path=path,
            created_at=now,
            expires_at=now + (self.ttl_seconds if ttl is None else ttl),
        )
        self._entries[key] = entry
        for tag in entry.tags:
            self._by_tag.setdefault(tag, set()).add(key)
        if path is not None:
            self._by_path.setdefault(path, set()).add(key)

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        *,
        tags: Iterable[str] = (),
        path: str | None = None,
        ttl: float | None = None,
    ) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached

        tags = frozenset(tags)
        self._track(tags)
        before = {tag: self._generations.get(tag, 0) for tag in tags}
        try:
            value = await loader()
            stale = any(self._generations.get(tag, 0) != gen for tag, gen in before.items())
        finally:
            self._untrack(tags)
        # A writer invalidated one of our tags while the loader was reading:
        # the value may predate that commit, so serve it but do not store it.
        if stale:
            logger.debug("[CACHE] Skipping stale fill for %s", key)
            return value
        self.put(key, value, tags=tags, path=path, ttl=ttl)
        return value

    def invalidate_tag(self, tag: str) -> int:
        self._bump(tag)
        keys = self._by_tag.pop(tag, set())
        for key in keys:
            self._remove(key)
        self._invalidations += 1
        return len(keys)

    def invalidate_path(self, path: str) -> int:
        keys = self._by_path.pop(path, set())
        for key in keys:
            self._remove(key)
        self._invalidations += 1
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()
        self._by_tag.clear()
        self._by_path.clear()
        # Fills still running must not store what they read before the clear
        for tag in list(self._generations):
            self._bump(tag)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            total_entries=len(self._entries),
            hit_count=self._hits,
            miss_count=self._misses,
            eviction_count=self._evictions,
            invalidation_count=self._invalidations,
            hit_rate=self._hits / total if total > 0 else 0.0,
            tracked_tags=len(self._generations),
        )

    def _track(self, tags: frozenset[str]) -> None:
        for tag in tags:
            self._inflight[tag] = self._inflight.get(tag, 0) + 1
            self._generations.setdefault(tag, 0)

    def _untrack(self, tags: frozenset[str]) -> None:
        for tag in tags:
            remaining = self._inflight.get(tag, 0) - 1
            if remaining > 0:
                self._inflight[tag] = remaining
            else:
                self._inflight.pop(tag, None)
                self._generations.pop(tag, None)

    def _bump(self, tag: str) -> None:
        # Tags with no fill in flight have nobody to warn
        if tag in self._generations:
            self._generations[tag] += 1

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        for tag in entry.tags:
            keys = self._by_tag.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._by_tag[tag]
        if entry.path is not None:
            keys = self._by_path.get(entry.path)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._by_path[entry.path]

    def _evict_oldest(self) -> None:
        if not self._entries:
            return
        oldest_key = min(self._entries, key=lambda k: self._entries[k].created_at)
        self._remove(oldest_key)
        self._evictions += 1
