from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable

from src.domain.entities.reference import ReferenceOption

CacheKey = tuple[str, int | None]  # (kind, parent id)


class ReferenceCache:
    """Shared read-only cache of reference lists, keyed by kind and parent id.

    Entries expire ``ttl_seconds`` after they were stored; the least recently
    used entry is evicted once ``max_size`` is reached.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_size: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._cache: OrderedDict[CacheKey, tuple[float, list[ReferenceOption]]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: CacheKey) -> list[ReferenceOption] | None:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._cache[key]
                return None
            self._cache.move_to_end(key)
            return list(value)

    def put(self, key: CacheKey, value: list[ReferenceOption]) -> None:
        with self._lock:
            if key in self._cache:
                del self._cache[key]
            elif len(self._cache) >= self.max_size:
                self._cache.popitem(last=False)
            self._cache[key] = (self._clock(), list(value))

    def get_or_load(self, key: CacheKey, loader: Callable[[], list[ReferenceOption]]) -> list[ReferenceOption]:
        """Return the cached list or call ``loader``. Loader errors propagate and are not cached."""
        cached = self.get(key)
        if cached is not None:
            return cached
        value = loader()
        self.put(key, value)
        return list(value)

    def invalidate(self, kind: str | None = None) -> None:
        """Drop every entry, or only those of one kind."""
        with self._lock:
            if kind is None:
                self._cache.clear()
                return
            for key in [k for k in self._cache if k[0] == kind]:
                del self._cache[key]

    def __len__(self) -> int:
        return len(self._cache)
