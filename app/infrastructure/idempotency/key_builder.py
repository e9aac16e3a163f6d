"""Idempotency key builder for consistent key generation."""

import hashlib
from typing import Any


class IdempotencyKeyBuilder:
    """Build deterministic idempotency keys.

    Components are sorted by name before hashing so call-site argument
    order never changes the key.

    Example:
        >>> builder = IdempotencyKeyBuilder(namespace="notifications")
        >>> builder.build(
        ...     operation="create",
        ...     recipient_id="user-1",
        ...     dedup_key="expiry:milk",
        ... )
        'notifications:create:5c1f0b7e2a9d4c3b'
    """

    def __init__(self, namespace: str):
        self.namespace = namespace

    def build(self, operation: str, **components: Any) -> str:
        """Build an idempotency key from components.

        Args:
            operation: Operation type (e.g., "create")
            **components: Key components (recipient_id, dedup_key, ...)

        Returns:
            ``"<namespace>:<operation>:<16 hex chars>"``
        """
        key_parts = [self.namespace, operation]
        key_parts.extend(f"{k}={v}" for k, v in sorted(components.items()))
        key_string = "|".join(str(part) for part in key_parts)

        key_hash = hashlib.sha256(key_string.encode()).hexdigest()[:16]

        return f"{self.namespace}:{operation}:{key_hash}"
