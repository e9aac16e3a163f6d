"""Infrastructure idempotency cache.

Short-lived key cache used as the fast path of notification deduplication.

Usage:

    from infrastructure.idempotency import IdempotencyKeyBuilder, create_cache

    cache = create_cache()
    builder = IdempotencyKeyBuilder(namespace="notifications")

    key = builder.build("create", recipient_id="u-1", dedup_key="expiry:milk")
    cached = cache.get(key)
    if cached is None:
        cache.set(key, {"notification_id": "n-1"}, ttl_seconds=300)
"""

from infrastructure.idempotency.cache import IdempotencyCache
from infrastructure.idempotency.factory import create_cache
from infrastructure.idempotency.key_builder import IdempotencyKeyBuilder
from infrastructure.idempotency.memory import InMemoryIdempotencyCache

__all__ = [
    "IdempotencyCache",
    "create_cache",
    "IdempotencyKeyBuilder",
    "InMemoryIdempotencyCache",
]
