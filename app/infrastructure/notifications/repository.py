"""Notification persistence contract and in-memory store.

``NotificationRepository`` is the collaborator interface the notification
components depend on. ``InMemoryNotificationRepository`` implements it for
development and tests: every record is copied on the way in and on the way
out, so callers never share mutable state with the store.
"""

import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from infrastructure.notifications.models import (
    Channel,
    DeliveryLog,
    DeliveryStatus,
    Notification,
    NotificationPreference,
    NotificationQuery,
    NotificationStatus,
    NotificationTemplate,
    NotificationType,
    ScheduledNotification,
    ScheduleStatus,
)


class NotificationRepository(Protocol):
    """Storage operations used by the notification subsystem."""

    # Preferences
    def get_preference(self, recipient_id: str) -> Optional[NotificationPreference]: ...

    def save_preference(self, preference: NotificationPreference) -> None: ...

    # Templates
    def get_template(self, notification_type: NotificationType) -> Optional[NotificationTemplate]: ...

    def list_templates(self) -> List[NotificationTemplate]: ...

    def save_template(self, template: NotificationTemplate) -> None: ...

    def delete_template(self, notification_type: NotificationType) -> bool: ...

    def record_template_usage(self, notification_type: NotificationType, at: datetime) -> None: ...

    # Notifications
    def create_notification(self, notification: Notification) -> None: ...

    def get_notification(self, notification_id: str) -> Optional[Notification]: ...

    def update_notification(self, notification: Notification) -> None: ...

    def find_duplicate(
        self,
        recipient_id: str,
        notification_type: NotificationType,
        dedup_key: Optional[str],
        batch_id: Optional[str],
        since: datetime,
        statuses: Iterable[NotificationStatus],
    ) -> Optional[Notification]: ...

    def list_notifications(
        self, recipient_id: str, query: NotificationQuery
    ) -> Tuple[List[Notification], int]: ...

    def list_recipient_notifications_since(
        self, recipient_id: str, since: datetime
    ) -> List[Notification]: ...

    def count_unread(self, recipient_id: str, statuses: Iterable[NotificationStatus]) -> int: ...

    def mark_read(self, recipient_id: str, notification_ids: Iterable[str], at: datetime) -> int: ...

    def mark_all_read(self, recipient_id: str, at: datetime) -> int: ...

    def soft_delete(self, recipient_id: str, notification_ids: Iterable[str], at: datetime) -> int: ...

    def list_due_retries(self, now: datetime, limit: int) -> List[Notification]: ...

    def list_stale(
        self, statuses: Iterable[NotificationStatus], updated_before: datetime, limit: int
    ) -> List[Notification]: ...

    def delete_older_than(
        self, cutoff: datetime, statuses: Iterable[NotificationStatus]
    ) -> int: ...

    # Delivery logs
    def append_delivery_log(self, log: DeliveryLog) -> None: ...

    def list_delivery_logs(self, notification_id: str) -> List[DeliveryLog]: ...

    def count_deliveries(
        self, recipient_id: str, since: datetime, channel: Optional[Channel] = None
    ) -> int: ...

    # Scheduled notifications
    def create_scheduled(self, scheduled: ScheduledNotification) -> None: ...

    def get_scheduled(self, scheduled_id: str) -> Optional[ScheduledNotification]: ...

    def update_scheduled(self, scheduled: ScheduledNotification) -> None: ...

    def list_due_scheduled(self, now: datetime, limit: int) -> List[ScheduledNotification]: ...

    def list_scheduled_for_notification(self, notification_id: str) -> List[ScheduledNotification]: ...


class InMemoryNotificationRepository:
    """Thread-safe dict-backed implementation of NotificationRepository."""

    def __init__(self):
        self._lock = threading.RLock()
        self._preferences: Dict[str, NotificationPreference] = {}
        self._templates: Dict[NotificationType, NotificationTemplate] = {}
        self._notifications: Dict[str, Notification] = {}
        self._delivery_logs: Dict[str, List[DeliveryLog]] = {}
        self._scheduled: Dict[str, ScheduledNotification] = {}

    # Preferences

    def get_preference(self, recipient_id: str) -> Optional[NotificationPreference]:
        with self._lock:
            preference = self._preferences.get(recipient_id)
            return preference.model_copy(deep=True) if preference else None

    def save_preference(self, preference: NotificationPreference) -> None:
        with self._lock:
            self._preferences[preference.recipient_id] = preference.model_copy(deep=True)

    # Templates

    def get_template(self, notification_type: NotificationType) -> Optional[NotificationTemplate]:
        with self._lock:
            template = self._templates.get(notification_type)
            return template.model_copy(deep=True) if template else None

    def list_templates(self) -> List[NotificationTemplate]:
        with self._lock:
            return [t.model_copy(deep=True) for t in self._templates.values()]

    def save_template(self, template: NotificationTemplate) -> None:
        with self._lock:
            self._templates[template.type] = template.model_copy(deep=True)

    def delete_template(self, notification_type: NotificationType) -> bool:
        with self._lock:
            return self._templates.pop(notification_type, None) is not None

    def record_template_usage(self, notification_type: NotificationType, at: datetime) -> None:
        with self._lock:
            template = self._templates.get(notification_type)
            if template is not None:
                template.usage_count += 1
                template.last_used_at = at

    # Notifications

    def create_notification(self, notification: Notification) -> None:
        with self._lock:
            if notification.id in self._notifications:
                raise ValueError(f"Notification {notification.id} already exists")
            self._notifications[notification.id] = notification.model_copy(deep=True)

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            notification = self._notifications.get(notification_id)
            return notification.model_copy(deep=True) if notification else None

    def update_notification(self, notification: Notification) -> None:
        with self._lock:
            current = self._notifications.get(notification.id)
            if current is None:
                raise KeyError(notification.id)
            stored = notification.model_copy(deep=True)
            # read/delete marks are written by the read side while a dispatch is in flight
            stored.read_at = stored.read_at or current.read_at
            stored.deleted_at = stored.deleted_at or current.deleted_at
            self._notifications[notification.id] = stored

    def find_duplicate(
        self,
        recipient_id: str,
        notification_type: NotificationType,
        dedup_key: Optional[str],
        batch_id: Optional[str],
        since: datetime,
        statuses: Iterable[NotificationStatus],
    ) -> Optional[Notification]:
        wanted = set(statuses)
        with self._lock:
            matches = [
                n
                for n in self._notifications.values()
                if n.recipient_id == recipient_id
                and n.type == notification_type
                and n.created_at >= since
                and n.status in wanted
                and n.deleted_at is None
                and (
                    (dedup_key is not None and n.dedup_key == dedup_key)
                    or (batch_id is not None and n.batch_id == batch_id)
                )
            ]
            if not matches:
                return None
            oldest = min(matches, key=lambda n: n.created_at)
            return oldest.model_copy(deep=True)

    def list_notifications(
        self, recipient_id: str, query: NotificationQuery
    ) -> Tuple[List[Notification], int]:
        search = query.search.lower() if query.search else None
        with self._lock:
            rows = [
                n
                for n in self._notifications.values()
                if n.recipient_id == recipient_id
                and n.deleted_at is None
                and (query.type is None or n.type == query.type)
                and (query.status is None or n.status == query.status)
                and (query.date_from is None or n.created_at >= query.date_from)
                and (query.date_to is None or n.created_at <= query.date_to)
                and (query.include_read or n.read_at is None)
                and (
                    search is None
                    or search in n.title.lower()
                    or search in n.content.lower()
                )
            ]
            rows.sort(key=lambda n: n.created_at, reverse=True)
            page = rows[query.offset : query.offset + query.limit]
            return [n.model_copy(deep=True) for n in page], len(rows)

    def list_recipient_notifications_since(
        self, recipient_id: str, since: datetime
    ) -> List[Notification]:
        with self._lock:
            return [
                n.model_copy(deep=True)
                for n in self._notifications.values()
                if n.recipient_id == recipient_id
                and n.deleted_at is None
                and n.created_at >= since
            ]

    def count_unread(self, recipient_id: str, statuses: Iterable[NotificationStatus]) -> int:
        wanted = set(statuses)
        with self._lock:
            return sum(
                1
                for n in self._notifications.values()
                if n.recipient_id == recipient_id
                and n.deleted_at is None
                and n.read_at is None
                and n.status in wanted
            )

    def mark_read(self, recipient_id: str, notification_ids: Iterable[str], at: datetime) -> int:
        ids = set(notification_ids)
        updated = 0
        with self._lock:
            for notification_id in ids:
                n = self._notifications.get(notification_id)
                if n is None or n.recipient_id != recipient_id or n.deleted_at is not None:
                    continue
                if n.read_at is None:
                    n.read_at = at
                    n.updated_at = at
                    updated += 1
        return updated

    def mark_all_read(self, recipient_id: str, at: datetime) -> int:
        updated = 0
        with self._lock:
            for n in self._notifications.values():
                if n.recipient_id == recipient_id and n.deleted_at is None and n.read_at is None:
                    n.read_at = at
                    n.updated_at = at
                    updated += 1
        return updated

    def soft_delete(self, recipient_id: str, notification_ids: Iterable[str], at: datetime) -> int:
        ids = set(notification_ids)
        deleted = 0
        with self._lock:
            for notification_id in ids:
                n = self._notifications.get(notification_id)
                if n is None or n.recipient_id != recipient_id or n.deleted_at is not None:
                    continue
                n.deleted_at = at
                n.updated_at = at
                deleted += 1
        return deleted

    def list_due_retries(self, now: datetime, limit: int) -> List[Notification]:
        with self._lock:
            due = [
                n
                for n in self._notifications.values()
                if n.status == NotificationStatus.FAILED
                and n.next_retry_at is not None
                and n.next_retry_at <= now
                and n.deleted_at is None
            ]
            due.sort(key=lambda n: n.next_retry_at)
            return [n.model_copy(deep=True) for n in due[:limit]]

    def list_stale(
        self, statuses: Iterable[NotificationStatus], updated_before: datetime, limit: int
    ) -> List[Notification]:
        wanted = set(statuses)
        with self._lock:
            stale = [
                n
                for n in self._notifications.values()
                if n.status in wanted
                and n.updated_at <= updated_before
                and n.deleted_at is None
            ]
            stale.sort(key=lambda n: n.updated_at)
            return [n.model_copy(deep=True) for n in stale[:limit]]

    def delete_older_than(
        self, cutoff: datetime, statuses: Iterable[NotificationStatus]
    ) -> int:
        wanted = set(statuses)
        with self._lock:
            doomed = [
                n.id
                for n in self._notifications.values()
                if n.created_at < cutoff and n.status in wanted
            ]
            for notification_id in doomed:
                del self._notifications[notification_id]
                self._delivery_logs.pop(notification_id, None)
            for scheduled_id in [
                s.id for s in self._scheduled.values() if s.notification_id in doomed
            ]:
                del self._scheduled[scheduled_id]
            return len(doomed)

    # Delivery logs

    def append_delivery_log(self, log: DeliveryLog) -> None:
        with self._lock:
            self._delivery_logs.setdefault(log.notification_id, []).append(
                log.model_copy(deep=True)
            )

    def list_delivery_logs(self, notification_id: str) -> List[DeliveryLog]:
        with self._lock:
            return [
                log.model_copy(deep=True)
                for log in self._delivery_logs.get(notification_id, [])
            ]

    def count_deliveries(
        self, recipient_id: str, since: datetime, channel: Optional[Channel] = None
    ) -> int:
        """Count successful non-IN_APP deliveries for caps."""
        with self._lock:
            return sum(
                1
                for logs in self._delivery_logs.values()
                for log in logs
                if log.recipient_id == recipient_id
                and log.status == DeliveryStatus.SENT
                and log.sent_at >= since
                and log.channel != Channel.IN_APP
                and (channel is None or log.channel == channel)
            )

    # Scheduled notifications

    def create_scheduled(self, scheduled: ScheduledNotification) -> None:
        with self._lock:
            self._scheduled[scheduled.id] = scheduled.model_copy(deep=True)

    def get_scheduled(self, scheduled_id: str) -> Optional[ScheduledNotification]:
        with self._lock:
            scheduled = self._scheduled.get(scheduled_id)
            return scheduled.model_copy(deep=True) if scheduled else None

    def update_scheduled(self, scheduled: ScheduledNotification) -> None:
        with self._lock:
            if scheduled.id not in self._scheduled:
                raise KeyError(scheduled.id)
            self._scheduled[scheduled.id] = scheduled.model_copy(deep=True)

    def list_due_scheduled(self, now: datetime, limit: int) -> List[ScheduledNotification]:
        with self._lock:
            due = [
                s
                for s in self._scheduled.values()
                if s.status == ScheduleStatus.SCHEDULED and s.scheduled_time <= now
            ]
            due.sort(key=lambda s: s.scheduled_time)
            return [s.model_copy(deep=True) for s in due[:limit]]

    def list_scheduled_for_notification(self, notification_id: str) -> List[ScheduledNotification]:
        with self._lock:
            return [
                s.model_copy(deep=True)
                for s in self._scheduled.values()
                if s.notification_id == notification_id
            ]
