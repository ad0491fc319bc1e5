"""Bounded memo of ``test_rules`` results keyed by URL and rule ids."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, Optional, Tuple

from .constants import DEFAULT_MAX_CACHE_SIZE
from .logging_config import get_logger
from .models import CacheStats, MatchResult, UrlRule

logger = get_logger(__name__)

CacheKey = Tuple[str, Tuple[str, ...]]


def build_cache_key(url: str, rules: Iterable[UrlRule]) -> CacheKey:
    """Key a lookup by URL and the sorted ids of the rule set.

    Rule contents are not part of the key, so edits that keep the id set
    unchanged need an explicit ``clear()``.
    """

    return (url, tuple(sorted(str(rule.id) for rule in rules)))


class ResultCache:
    """In-memory cache with a hard entry cap and oldest-first eviction."""

    def __init__(self, max_size: int = DEFAULT_MAX_CACHE_SIZE) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._entries: Dict[CacheKey, MatchResult] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: CacheKey) -> Optional[MatchResult]:
        with self._lock:
            result = self._entries.get(key)
            if result is None:
                self._misses += 1
            else:
                self._hits += 1
            return result

    def put(self, key: CacheKey, result: MatchResult) -> Optional[CacheKey]:
        """Store ``result`` and return the evicted key, if any."""

        with self._lock:
            self._entries[key] = result
            if len(self._entries) <= self.max_size:
                return None
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            self._evictions += 1
        logger.debug("Evicted cached match result", extra={"url": oldest[0], "cache_size": self.max_size})
        return oldest

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_size=self.max_size,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
