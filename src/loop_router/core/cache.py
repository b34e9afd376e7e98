"""Short-lived response cache used to soften Router rate limits."""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional


class ResponseCache:
    """Size-bounded in-memory map with per-entry TTL.

    Expired entries are dropped when read. When ``max_entries`` is exceeded the
    oldest insertion is evicted.
    """

    def __init__(
        self,
        max_entries: int = 128,
        default_ttl_s: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_entries = max_entries
        self.default_ttl_s = default_ttl_s
        self._clock = clock
        self._entries: "OrderedDict[Hashable, tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: Hashable, value: Any, ttl_s: Optional[float] = None) -> None:
        ttl = self.default_ttl_s if ttl_s is None else ttl_s
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (self._clock() + ttl, value)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class NullCache:
    """Stand-in used when caching is disabled."""

    def get(self, key: Hashable) -> Optional[Any]:
        return None

    def set(self, key: Hashable, value: Any, ttl_s: Optional[float] = None) -> None:
        return None
