"""Retry system infrastructure settings."""

from pydantic import Field, model_validator

from infrastructure.configuration.base import InfrastructureSettings


class RetrySettings(InfrastructureSettings):
    """Retry configuration for failed notification deliveries.

    Environment Variables:
        RETRY_ENABLED: Enable automatic re-dispatch of failed notifications (default: True)
        RETRY_BASE_DELAY_SECONDS: Base exponential backoff delay (default: 60s)
        RETRY_MAX_DELAY_SECONDS: Maximum backoff delay (default: 3600s = 1h)
        RETRY_BATCH_SIZE: Records to process per sweep (default: 50)
        RETRY_CLAIM_LEASE_SECONDS: How long a sweep may hold a notification (default: 300s)

    Exponential Backoff:
        Delay calculation: min(base_delay * (2 ^ retry_count), max_delay)

        Example with defaults (base=60s, max=3600s):
            First retry: 60s
            Second retry: 120s
            Third retry: 240s

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        if settings.retry.enabled:
            base = settings.retry.base_delay_seconds
        ```
    """

    enabled: bool = Field(
        default=True,
        alias="RETRY_ENABLED",
        description="Enable retry system for failed notifications",
    )
    base_delay_seconds: int = Field(
        default=60,
        alias="RETRY_BASE_DELAY_SECONDS",
        description="Base delay for exponential backoff (seconds)",
        ge=1,
    )
    max_delay_seconds: int = Field(
        default=3600,
        alias="RETRY_MAX_DELAY_SECONDS",
        description="Maximum delay for exponential backoff (seconds, 1 hour)",
        ge=1,
    )
    batch_size: int = Field(
        default=50,
        alias="RETRY_BATCH_SIZE",
        description="Number of records to process per batch",
        ge=1,
    )
    claim_lease_seconds: int = Field(
        default=300,
        alias="RETRY_CLAIM_LEASE_SECONDS",
        description="Duration to hold claim on a notification (seconds, 5 minutes)",
        ge=1,
    )

    @model_validator(mode="after")
    def validate_delays(self) -> "RetrySettings":
        """Ensure the backoff cap is not below the base delay."""
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("RETRY_MAX_DELAY_SECONDS must be >= RETRY_BASE_DELAY_SECONDS")
        return self
