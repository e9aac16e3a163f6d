"""Idempotency cache factory."""

from infrastructure.idempotency.cache import IdempotencyCache
from infrastructure.idempotency.memory import InMemoryIdempotencyCache
from infrastructure.logging import get_module_logger

logger = get_module_logger()


def create_cache() -> IdempotencyCache:
    """Create the idempotency cache used by the notification service.

    Returns:
        A fresh in-process cache. Each service instance owns its cache; the
        notification store stays the source of truth for dedup decisions.
    """
    cache = InMemoryIdempotencyCache()
    logger.info("initialized_idempotency_cache", backend="memory")
    return cache
