"""Short-lived cache of travel-cost matrix cells shared across requests."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Callable, Hashable, Optional, Protocol

from ...models.domain import MatrixCell

CacheKey = tuple[str, str, Hashable]


class CellCache(Protocol):
    def get(self, key: CacheKey) -> Optional[MatrixCell]: ...

    def put(self, key: CacheKey, value: MatrixCell) -> None: ...

    def evict(self, key: CacheKey) -> None: ...


def traffic_bucket(departure_time: datetime, consider_traffic: bool, bucket_minutes: int) -> Hashable:
    """Coarse time-of-day bucket so nearby departures share cache entries.

    Without traffic the provider answer does not depend on the departure
    time, so every request shares the ``"static"`` bucket.
    """
    if not consider_traffic:
        return "static"
    if departure_time.tzinfo is None:
        departure_time = departure_time.replace(tzinfo=timezone.utc)
    return int(departure_time.timestamp()) // (bucket_minutes * 60)


def cell_key(origin_key: str, destination_key: str, bucket: Hashable) -> CacheKey:
    return (origin_key, destination_key, bucket)


class MatrixCache:
    """In-memory TTL cache with a bounded number of entries.

    The lock is held only for dictionary operations, never while a provider
    call is in flight. Expired entries are dropped on read and reported as
    misses.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 20000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[CacheKey, tuple[float, MatrixCell]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: CacheKey) -> Optional[MatrixCell]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            expires_at, value = entry
            if expires_at <= now:
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return value

    def put(self, key: CacheKey, value: MatrixCell) -> None:
        if self.ttl_seconds <= 0:
            return
        expires_at = self._clock() + self.ttl_seconds
        with self._lock:
            self._entries[key] = (expires_at, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def evict(self, key: CacheKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
