"""Exponential backoff for failed notifications."""

from datetime import datetime, timedelta
from typing import Optional

from infrastructure.logging import get_module_logger
from infrastructure.notifications.models import Clock, Notification, utc_now

logger = get_module_logger()


class RetryScheduler:
    """Decides whether and when a FAILED notification is re-dispatched.

    Exponential Backoff:
        delay = min(base_delay * (2 ^ retry_count), max_delay)

        Example with defaults (base=60s, max=3600s):
            First retry: 60s
            Second retry: 120s
            Third retry: 240s

    The retry itself is performed by the retry sweep, which polls the
    persisted ``next_retry_at``.
    """

    def __init__(
        self,
        base_delay_seconds: int = 60,
        max_delay_seconds: int = 3600,
        enabled: bool = True,
        clock: Clock = utc_now,
    ):
        self.base_delay_seconds = base_delay_seconds
        self.max_delay_seconds = max_delay_seconds
        self.enabled = enabled
        self._clock = clock

    def calculate_delay(self, retry_count: int) -> timedelta:
        """Calculate next retry delay with exponential backoff."""
        delay_seconds = self.base_delay_seconds * (2**retry_count)
        return timedelta(seconds=min(delay_seconds, self.max_delay_seconds))

    def schedule(self, notification: Notification, has_retryable_failure: bool) -> Optional[datetime]:
        """Update ``notification`` in place for its next attempt.

        Returns:
            The new ``next_retry_at``, or None when the notification stays
            FAILED for good (retries exhausted, disabled, or nothing retryable).
        """
        if (
            not self.enabled
            or not has_retryable_failure
            or notification.retry_count >= notification.max_retries
        ):
            notification.next_retry_at = None
            logger.info(
                "retry_not_scheduled",
                notification_id=notification.id,
                retry_count=notification.retry_count,
                max_retries=notification.max_retries,
                has_retryable_failure=has_retryable_failure,
            )
            return None

        next_retry_at = self._clock() + self.calculate_delay(notification.retry_count)
        notification.retry_count += 1
        notification.next_retry_at = next_retry_at

        logger.info(
            "retry_scheduled",
            notification_id=notification.id,
            retry_count=notification.retry_count,
            next_retry_at=next_retry_at.isoformat(),
        )
        return next_retry_at
