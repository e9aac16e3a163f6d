"""Idempotency infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class IdempotencySettings(InfrastructureSettings):
    """Dedup key cache configuration.

    The cache is only a fast path in front of the notification store; an entry
    that outlives its notification is revalidated before it is trusted.

    Environment Variables:
        IDEMPOTENCY_TTL_SECONDS: Upper bound on how long a dedup key stays cached;
            entries never outlive the dedup window (default: 3600s = 1h)
        IDEMPOTENCY_NAMESPACE: Prefix for generated dedup keys (default: notifications)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        ttl = settings.idempotency.IDEMPOTENCY_TTL_SECONDS
        ```
    """

    IDEMPOTENCY_TTL_SECONDS: int = Field(default=3600, alias="IDEMPOTENCY_TTL_SECONDS")
    IDEMPOTENCY_NAMESPACE: str = Field(
        default="notifications", alias="IDEMPOTENCY_NAMESPACE"
    )
