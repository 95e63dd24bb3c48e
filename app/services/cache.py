"""Small in-process TTL cache for repository statistics."""

import threading
import time
from functools import lru_cache
from typing import Any


def repository_stats_key(repository_id: int) -> str:
    return f"repo:{repository_id}:stats"


class StatsCache:
    """Thread-safe key/value store whose entries expire ttl_sec after being set."""

    def __init__(self, ttl_sec: float = 600) -> None:
        self.ttl_sec = ttl_sec
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= time.monotonic():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        if self.ttl_sec <= 0:
            return
        with self._lock:
            self._entries[key] = (time.monotonic() + self.ttl_sec, value)

    def invalidate(self, key: str) -> bool:
        """Drop key; True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None


@lru_cache
def get_stats_cache() -> StatsCache:
    """Process-wide statistics cache shared by the API and the scan orchestrator."""
    from app.core.config import get_settings

    return StatsCache(get_settings().STATS_CACHE_TTL_SEC)
