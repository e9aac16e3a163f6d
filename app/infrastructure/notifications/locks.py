"""Per-key locking primitives.

``KeyedLocks`` serializes notification creation per dedup key.
``ClaimRegistry`` gives a single owner the right to work on a notification
id for a bounded lease; dispatch, retry and the sweeps claim before they
touch a notification so no two attempt cycles for the same id overlap.
Different keys never contend.
"""

import threading
import time
import uuid
from contextlib import contextmanager
from typing import Callable, Dict, Generator, Optional, Tuple

from infrastructure.logging import get_module_logger

logger = get_module_logger()


class KeyedLocks:
    """Blocking locks created on demand per key and dropped when idle."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, Tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, key: str) -> Generator[None, None, None]:
        with self._guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, users + 1)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                _, users = self._locks[key]
                if users <= 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, users - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class ClaimRegistry:
    """Leased, non-blocking claims keyed by notification id.

    A claim that outlives its lease is treated as abandoned and may be
    taken over.

    Example:
        token = claims.claim(notification_id, lease_seconds=300)
        if token is None:
            return  # someone else is working on it
        try:
            ...
        finally:
            claims.release(notification_id, token)
    """

    def __init__(self, monotonic: Callable[[], float] = time.monotonic):
        self._lock = threading.Lock()
        self._claims: Dict[str, Tuple[str, float]] = {}
        self._monotonic = monotonic

    def claim(self, key: str, lease_seconds: float) -> Optional[str]:
        now = self._monotonic()
        with self._lock:
            existing = self._claims.get(key)
            if existing is not None and existing[1] > now:
                return None
            if existing is not None:
                logger.warning("claim_lease_expired", key=key)
            token = uuid.uuid4().hex
            self._claims[key] = (token, now + lease_seconds)
            return token

    def release(self, key: str, token: str) -> None:
        with self._lock:
            existing = self._claims.get(key)
            if existing is not None and existing[0] == token:
                del self._claims[key]

    def is_claimed(self, key: str) -> bool:
        now = self._monotonic()
        with self._lock:
            existing = self._claims.get(key)
            return existing is not None and existing[1] > now

    @contextmanager
    def claimed(self, key: str, lease_seconds: float) -> Generator[bool, None, None]:
        """Context manager form; yields whether the claim was obtained."""
        token = self.claim(key, lease_seconds)
        try:
            yield token is not None
        finally:
            if token is not None:
                self.release(key, token)
