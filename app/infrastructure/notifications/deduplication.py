"""Duplicate-creation suppression by dedup key or batch id."""

from contextlib import contextmanager
from datetime import timedelta
from typing import Generator, List, Optional

from infrastructure.idempotency import IdempotencyCache, IdempotencyKeyBuilder
from infrastructure.logging import get_module_logger
from infrastructure.notifications.locks import KeyedLocks
from infrastructure.notifications.models import (
    Clock,
    Notification,
    NotificationStatus,
    NotificationType,
    utc_now,
)
from infrastructure.notifications.repository import NotificationRepository

logger = get_module_logger()

DEDUP_STATUSES = (
    NotificationStatus.PENDING,
    NotificationStatus.SENDING,
    NotificationStatus.SENT,
)


class Deduplicator:
    """Returns an existing live notification instead of creating a duplicate.

    A notification matches when it has the same recipient and type, the same
    dedup key or batch id, was created within the window, and is PENDING,
    SENDING or SENT. Creation for one (recipient, type) pair with a key runs
    under ``guard`` so a lookup and the following insert are not interleaved
    with another create for the same pair.

    The idempotency cache maps each key to the notification id it produced.
    A cache hit is only trusted after the row is re-read and still matches.
    """

    def __init__(
        self,
        repository: NotificationRepository,
        cache: IdempotencyCache,
        window_seconds: int = 300,
        key_builder: Optional[IdempotencyKeyBuilder] = None,
        cache_ttl_seconds: Optional[int] = None,
        clock: Clock = utc_now,
    ):
        self._repository = repository
        self._cache = cache
        self._window = timedelta(seconds=window_seconds)
        self._cache_ttl = min(window_seconds, cache_ttl_seconds or window_seconds)
        self._keys = key_builder or IdempotencyKeyBuilder(namespace="notifications")
        self._clock = clock
        self._locks = KeyedLocks()

    @staticmethod
    def applies(dedup_key: Optional[str], batch_id: Optional[str]) -> bool:
        return bool(dedup_key) or bool(batch_id)

    @contextmanager
    def guard(
        self,
        recipient_id: str,
        notification_type: NotificationType,
        dedup_key: Optional[str],
        batch_id: Optional[str],
    ) -> Generator[None, None, None]:
        """Hold the creation lock for the pair; a no-op when no key is given."""
        if not self.applies(dedup_key, batch_id):
            yield
            return
        lock_key = self._keys.build(
            "create_lock", recipient_id=recipient_id, type=notification_type.value
        )
        with self._locks.hold(lock_key):
            yield

    def find_existing(
        self,
        recipient_id: str,
        notification_type: NotificationType,
        dedup_key: Optional[str],
        batch_id: Optional[str],
    ) -> Optional[Notification]:
        if not self.applies(dedup_key, batch_id):
            return None

        since = self._clock() - self._window

        for key in self._cache_keys(recipient_id, notification_type, dedup_key, batch_id):
            cached = self._cache.get(key)
            if not cached:
                continue
            notification = self._repository.get_notification(cached["notification_id"])
            if notification is not None and self._still_matches(notification, since):
                logger.info(
                    "duplicate_notification_suppressed",
                    notification_id=notification.id,
                    recipient_id=recipient_id,
                    source="cache",
                )
                return notification
            self._cache.delete(key)

        notification = self._repository.find_duplicate(
            recipient_id,
            notification_type,
            dedup_key or None,
            batch_id or None,
            since,
            DEDUP_STATUSES,
        )
        if notification is not None:
            logger.info(
                "duplicate_notification_suppressed",
                notification_id=notification.id,
                recipient_id=recipient_id,
                source="store",
            )
            self.remember(notification)
        return notification

    def remember(self, notification: Notification) -> None:
        """Cache the keys of a freshly created notification for the window."""
        if not self.applies(notification.dedup_key, notification.batch_id):
            return
        for key in self._cache_keys(
            notification.recipient_id,
            notification.type,
            notification.dedup_key,
            notification.batch_id,
        ):
            self._cache.set(key, {"notification_id": notification.id}, ttl_seconds=self._cache_ttl)

    def _cache_keys(
        self,
        recipient_id: str,
        notification_type: NotificationType,
        dedup_key: Optional[str],
        batch_id: Optional[str],
    ) -> List[str]:
        keys = []
        if dedup_key:
            keys.append(
                self._keys.build(
                    "create",
                    recipient_id=recipient_id,
                    type=notification_type.value,
                    dedup_key=dedup_key,
                )
            )
        if batch_id:
            keys.append(
                self._keys.build(
                    "create",
                    recipient_id=recipient_id,
                    type=notification_type.value,
                    batch_id=batch_id,
                )
            )
        return keys

    @staticmethod
    def _still_matches(notification: Notification, since) -> bool:
        return (
            notification.status in DEDUP_STATUSES
            and notification.created_at >= since
            and notification.deleted_at is None
        )
