"""Notification feature settings."""

from pydantic import Field

from infrastructure.configuration.base import FeatureSettings


class NotificationSettings(FeatureSettings):
    """Multi-channel notification behavior.

    Environment Variables:
        NOTIFICATION_DEDUP_WINDOW_SECONDS: Window in which a repeated dedup key
            returns the existing notification (default: 300s = 5min)
        NOTIFICATION_TEMPLATE_CACHE_TTL_SECONDS: Template cache lifetime (default: 300s)
        NOTIFICATION_DEFAULT_MAX_RETRIES: Retry budget for new notifications (default: 3)
        NOTIFICATION_DISPATCH_WORKERS: Concurrent notification dispatches (default: 8)
        NOTIFICATION_CHANNEL_WORKERS: Concurrent channel sends across all dispatches (default: 16)
        NOTIFICATION_STALE_SENDING_SECONDS: Age after which a SENDING/PENDING row
            is considered abandoned and re-driven (default: 600s)
        NOTIFICATION_RETENTION_DAYS: Age after which finished notifications are
            purged by the cleanup job (default: 90)
        NOTIFICATION_SWEEP_INTERVAL_SECONDS: Poll interval of the retry,
            scheduled and stale sweeps (default: 30s)
        NOTIFICATION_DEFAULT_LOCALE: Locale used when neither the request nor the
            recipient specifies one (default: en)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        window = settings.notifications.dedup_window_seconds
        ```
    """

    dedup_window_seconds: int = Field(
        default=300,
        alias="NOTIFICATION_DEDUP_WINDOW_SECONDS",
        ge=1,
    )
    template_cache_ttl_seconds: int = Field(
        default=300,
        alias="NOTIFICATION_TEMPLATE_CACHE_TTL_SECONDS",
        ge=0,
    )
    default_max_retries: int = Field(
        default=3,
        alias="NOTIFICATION_DEFAULT_MAX_RETRIES",
        ge=0,
    )
    dispatch_workers: int = Field(
        default=8,
        alias="NOTIFICATION_DISPATCH_WORKERS",
        ge=1,
    )
    channel_workers: int = Field(
        default=16,
        alias="NOTIFICATION_CHANNEL_WORKERS",
        ge=1,
    )
    stale_sending_seconds: int = Field(
        default=600,
        alias="NOTIFICATION_STALE_SENDING_SECONDS",
        ge=1,
    )
    retention_days: int = Field(
        default=90,
        alias="NOTIFICATION_RETENTION_DAYS",
        ge=1,
    )
    sweep_interval_seconds: int = Field(
        default=30,
        alias="NOTIFICATION_SWEEP_INTERVAL_SECONDS",
        ge=1,
    )
    default_locale: str = Field(
        default="en",
        alias="NOTIFICATION_DEFAULT_LOCALE",
    )
