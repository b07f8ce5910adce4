"""
TTL + size bounded cache of filtered matrices.

Keys come from `fingerprint`, which hashes only the matrix *shape* (data point
count and total demand) plus the canonical filter spec. Two different matrices
sharing both numbers map to the same key, so a freshly loaded upstream matrix
can be served a stale result until the entry expires. Call `clear()` when the
host reloads its data.
"""

from __future__ import annotations

import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from demandmatrix.matrix import DemandMatrix, FilterSpec

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 5 * 60 * 1000
DEFAULT_MAX_SIZE = 50


def fingerprint(matrix: DemandMatrix, filters: FilterSpec) -> str:
    """Cheap, deterministic cache key for (matrix, filters)."""
    return json.dumps(
        {
            "points": len(matrix.data_points),
            "demand": round(float(matrix.total_demand), 6),
            "filters": filters.canonical(),
        },
        sort_keys=True,
        separators=(",", ":"),
    )


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0


@dataclass(frozen=True)
class _Entry:
    matrix: DemandMatrix
    expires_at: float  # clock seconds


class FilterCache:
    """
    Insertion-ordered store with per-entry expiry.

    Eviction over `max_size` removes the oldest insertions first; reads do not
    reorder entries.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        if default_ttl_ms <= 0:
            raise ValueError("default_ttl_ms must be > 0")
        self.max_size = int(max_size)
        self.default_ttl_ms = int(default_ttl_ms)
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and entry.expires_at > self._clock()

    def get(self, key: str) -> Optional[DemandMatrix]:
        entry = self._entries.get(key)
        if entry is None:
            self.stats.misses += 1
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            self.stats.expirations += 1
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        return entry.matrix

    def set(self, key: str, matrix: DemandMatrix, ttl_ms: Optional[int] = None) -> None:
        ttl = self.default_ttl_ms if ttl_ms is None else int(ttl_ms)
        if ttl <= 0:
            raise ValueError("ttl_ms must be > 0")
        self._entries.pop(key, None)
        self._entries[key] = _Entry(matrix, self._clock() + ttl / 1000.0)
        self.evict_expired()
        self.evict_oldest_until_size(self.max_size)

    def evict_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for k in expired:
            del self._entries[k]
        self.stats.expirations += len(expired)
        return len(expired)

    def evict_oldest_until_size(self, max_size: int) -> int:
        removed = 0
        while len(self._entries) > max(0, max_size):
            key, _ = self._entries.popitem(last=False)
            logger.debug("Evicting oldest cache entry %s", key[:64])
            removed += 1
        self.stats.evictions += removed
        return removed

    def clear(self) -> None:
        self._entries.clear()
