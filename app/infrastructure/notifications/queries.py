"""Read-side queries and per-recipient mutations.

Every operation is scoped to the acting recipient. Single-id operations on
a notification the recipient does not own fail exactly like operations on
an id that does not exist; batch operations silently skip such ids and
return the number of rows they changed.
"""

from collections import Counter
from datetime import timedelta
from typing import List, Optional

from infrastructure.logging import get_module_logger
from infrastructure.notifications.errors import NotFoundOrForbiddenError
from infrastructure.notifications.models import (
    Clock,
    DeliveryLog,
    Notification,
    NotificationPage,
    NotificationQuery,
    NotificationStatus,
    RecipientStats,
    utc_now,
)
from infrastructure.notifications.recorder import DeliveryRecorder
from infrastructure.notifications.repository import NotificationRepository

logger = get_module_logger()

UNREAD_STATUSES = (
    NotificationStatus.SENDING,
    NotificationStatus.SENT,
)

FINISHED_STATUSES = (
    NotificationStatus.SENT,
    NotificationStatus.FAILED,
    NotificationStatus.CANCELLED,
)


class NotificationQueries:
    """Listing, unread counts, read marks, soft deletes and stats."""

    def __init__(
        self,
        repository: NotificationRepository,
        recorder: DeliveryRecorder,
        clock: Clock = utc_now,
    ):
        self._repository = repository
        self._recorder = recorder
        self._clock = clock

    def list_notifications(
        self, recipient_id: str, query: Optional[NotificationQuery] = None
    ) -> NotificationPage:
        query = query or NotificationQuery()
        items, total = self._repository.list_notifications(recipient_id, query)
        return NotificationPage(
            items=items,
            total=total,
            has_more=query.offset + len(items) < total,
        )

    def get_notification(self, recipient_id: str, notification_id: str) -> Notification:
        notification = self._repository.get_notification(notification_id)
        if (
            notification is None
            or notification.recipient_id != recipient_id
            or notification.is_deleted
        ):
            raise NotFoundOrForbiddenError(notification_id)
        return notification

    def unread_count(self, recipient_id: str) -> int:
        """Unread notifications that have reached the dispatch stage."""
        return self._repository.count_unread(recipient_id, UNREAD_STATUSES)

    def mark_read(self, recipient_id: str, notification_id: str) -> Notification:
        """Mark one notification read; re-marking keeps the original timestamp."""
        notification = self.get_notification(recipient_id, notification_id)
        if notification.is_read:
            return notification
        self._repository.mark_read(recipient_id, [notification_id], self._clock())
        return self.get_notification(recipient_id, notification_id)

    def mark_all_read(self, recipient_id: str) -> int:
        updated = self._repository.mark_all_read(recipient_id, self._clock())
        logger.info("notifications_marked_read", recipient_id=recipient_id, count=updated)
        return updated

    def batch_mark_read(self, recipient_id: str, notification_ids: List[str]) -> int:
        updated = self._repository.mark_read(recipient_id, notification_ids, self._clock())
        logger.info(
            "notifications_marked_read",
            recipient_id=recipient_id,
            requested=len(notification_ids),
            count=updated,
        )
        return updated

    def delete_notification(self, recipient_id: str, notification_id: str) -> None:
        """Soft-delete one notification.

        Raises:
            NotFoundOrForbiddenError: missing, already deleted, or not owned
        """
        deleted = self._repository.soft_delete(recipient_id, [notification_id], self._clock())
        if not deleted:
            logger.warning(
                "notification_delete_refused",
                recipient_id=recipient_id,
                notification_id=notification_id,
            )
            raise NotFoundOrForbiddenError(notification_id)
        logger.info(
            "notification_deleted", recipient_id=recipient_id, notification_id=notification_id
        )

    def batch_delete(self, recipient_id: str, notification_ids: List[str]) -> int:
        deleted = self._repository.soft_delete(recipient_id, notification_ids, self._clock())
        logger.info(
            "notifications_deleted",
            recipient_id=recipient_id,
            requested=len(notification_ids),
            count=deleted,
        )
        return deleted

    def delivery_history(self, recipient_id: str, notification_id: str) -> List[DeliveryLog]:
        self.get_notification(recipient_id, notification_id)
        return self._recorder.history(notification_id)

    def recipient_stats(self, recipient_id: str, days: int = 30) -> RecipientStats:
        since = self._clock() - timedelta(days=days)
        rows = self._repository.list_recipient_notifications_since(recipient_id, since)
        return RecipientStats(
            days=days,
            total=len(rows),
            unread=sum(1 for n in rows if not n.is_read and n.status in UNREAD_STATUSES),
            by_status=dict(Counter(n.status.value for n in rows)),
            by_type=dict(Counter(n.type.value for n in rows)),
        )

    def cleanup_old_notifications(self, retention_days: int = 90) -> int:
        """Hard-delete finished notifications older than the retention period."""
        cutoff = self._clock() - timedelta(days=retention_days)
        removed = self._repository.delete_older_than(cutoff, FINISHED_STATUSES)
        logger.info(
            "notifications_cleaned_up",
            retention_days=retention_days,
            cutoff=cutoff.isoformat(),
            removed=removed,
        )
        return removed
