"""Idempotency cache abstract base class."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class IdempotencyCache(ABC):
    """Interface for short-lived key -> payload caches.

    The notification deduplicator stores ``{"notification_id": ...}`` under a
    dedup key so repeated creates can skip the store lookup. Entries are
    hints only; callers revalidate them against the notification store.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Get the cached payload for a key, or None if missing or expired."""

    @abstractmethod
    def set(self, key: str, response: Dict[str, Any], ttl_seconds: int) -> None:
        """Cache a payload for the given key.

        Args:
            key: Idempotency key.
            response: Payload dict to cache.
            ttl_seconds: Time-to-live in seconds.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Drop a single entry (no error when absent)."""

    @abstractmethod
    def clear(self) -> None:
        """Clear all cached entries (for testing)."""

    @abstractmethod
    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics (implementation-specific)."""
