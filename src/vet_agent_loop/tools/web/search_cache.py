from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable

from vet_agent_loop.tools.web.search_provider import WebHit

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_MAX_ENTRIES = 256


class SearchCache:
    """In-process TTL cache for search results.

    Expired entries are purged on every write and the cache never holds more
    than ``max_entries`` keys; the oldest write is evicted first.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._max_entries = max(1, max_entries)
        self._entries: OrderedDict[str, tuple[float, list[WebHit]]] = OrderedDict()

    @property
    def size(self) -> int:
        return len(self._entries)

    @staticmethod
    def key(query: str, count: int, recency_days: int | None = None, site: str | None = None) -> str:
        parts = [query.strip().lower(), str(count)]
        if recency_days:
            parts.append(f"recency:{recency_days}")
        if site:
            parts.append(f"site:{site}")
        return "|".join(parts)

    def get(self, key: str) -> list[WebHit] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, hits = entry
        if self._expired(stored_at, self._clock()):
            del self._entries[key]
            return None
        return hits

    def set(self, key: str, hits: list[WebHit]) -> None:
        now = self._clock()
        self._purge_expired(now)
        self._entries.pop(key, None)
        self._entries[key] = (now, hits)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def _expired(self, stored_at: float, now: float) -> bool:
        return now - stored_at > self._ttl_seconds

    def _purge_expired(self, now: float) -> None:
        # Insertion order is write order, so expired entries form a prefix.
        while self._entries:
            oldest_key, (stored_at, _) = next(iter(self._entries.items()))
            if not self._expired(stored_at, now):
                break
            del self._entries[oldest_key]
