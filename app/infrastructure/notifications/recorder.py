"""Delivery log recording."""

import threading
from typing import List, Optional, Set

from infrastructure.logging import get_module_logger
from infrastructure.notifications.models import (
    Channel,
    Clock,
    DeliveryLog,
    DeliveryStatus,
    Notification,
    utc_now,
)
from infrastructure.notifications.repository import NotificationRepository

logger = get_module_logger()


class DeliveryRecorder:
    """Appends one DeliveryLog row per channel attempt.

    Rows are never updated. A second SENT row for the same
    (notification, channel) is refused and the existing row is returned.
    """

    def __init__(self, repository: NotificationRepository, clock: Clock = utc_now):
        self._repository = repository
        self._clock = clock
        self._lock = threading.Lock()

    def record(
        self,
        notification: Notification,
        channel: Channel,
        success: bool,
        external_id: Optional[str] = None,
        error: Optional[str] = None,
        error_code: Optional[str] = None,
        retryable: bool = False,
        cost: float = 0.0,
        processing_time_ms: int = 0,
    ) -> DeliveryLog:
        log = DeliveryLog(
            notification_id=notification.id,
            recipient_id=notification.recipient_id,
            channel=channel,
            status=DeliveryStatus.SENT if success else DeliveryStatus.FAILED,
            sent_at=self._clock(),
            external_id=external_id,
            error=error,
            error_code=error_code,
            retryable=retryable and not success,
            cost=cost if success else 0.0,
            processing_time_ms=processing_time_ms,
            attempt=notification.retry_count,
        )

        with self._lock:
            if success:
                existing = self._successful_log(notification.id, channel)
                if existing is not None:
                    logger.warning(
                        "duplicate_delivery_refused",
                        notification_id=notification.id,
                        channel=channel.value,
                        existing_log_id=existing.id,
                    )
                    return existing
            self._repository.append_delivery_log(log)

        logger.info(
            "delivery_recorded",
            notification_id=notification.id,
            channel=channel.value,
            status=log.status.value,
            error_code=error_code,
            attempt=log.attempt,
            processing_time_ms=processing_time_ms,
        )
        return log

    def history(self, notification_id: str) -> List[DeliveryLog]:
        return sorted(
            self._repository.list_delivery_logs(notification_id), key=lambda log: log.sent_at
        )

    def successful_channels(self, notification_id: str) -> Set[Channel]:
        return {
            log.channel
            for log in self._repository.list_delivery_logs(notification_id)
            if log.is_success
        }

    def permanently_failed_channels(self, notification_id: str) -> Set[Channel]:
        """Channels whose most recent attempt failed with a non-retryable error."""
        latest = {}
        for log in self.history(notification_id):
            latest[log.channel] = log
        return {
            channel
            for channel, log in latest.items()
            if not log.is_success and not log.retryable
        }

    def _successful_log(self, notification_id: str, channel: Channel) -> Optional[DeliveryLog]:
        for log in self._repository.list_delivery_logs(notification_id):
            if log.channel == channel and log.is_success:
                return log
        return None
