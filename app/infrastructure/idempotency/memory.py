"""In-process idempotency cache implementation."""

import copy
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from infrastructure.idempotency.cache import IdempotencyCache
from infrastructure.logging import get_module_logger

logger = get_module_logger()


class InMemoryIdempotencyCache(IdempotencyCache):
    """Thread-safe TTL cache held in process memory.

    Suitable for a single service instance; expired entries are evicted
    lazily on read and on ``set``.

    Args:
        monotonic: Clock returning seconds, injectable for tests.
    """

    def __init__(self, monotonic: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        self._lock = threading.Lock()
        self._monotonic = monotonic
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        now = self._monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            expires_at, payload = entry
            if expires_at <= now:
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return copy.deepcopy(payload)

    def set(self, key: str, response: Dict[str, Any], ttl_seconds: int) -> None:
        now = self._monotonic()
        with self._lock:
            self._evict_expired(now)
            self._entries[key] = (now + ttl_seconds, copy.deepcopy(response))

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
        logger.debug("idempotency_cache_cleared")

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "backend": "memory",
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
            }

    def _evict_expired(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
