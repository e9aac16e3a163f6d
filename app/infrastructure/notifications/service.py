"""Notification service.

Orchestrates creation and dispatch. One instance is built at start-up by
``build_notification_service`` and passed to request handlers and the
background sweeps.

Creation flow:
    deduplicate -> resolve channels -> render -> persist PENDING
    -> defer (quiet hours) or enqueue dispatch

Creation returns as soon as the row is persisted; provider calls happen on
the dispatch queue.

Usage:
    from infrastructure.services import NotificationServiceDep

    @router.post("/notifications")
    def create(service: NotificationServiceDep, request: NotificationRequest):
        return service.create_notification(request)
"""

from datetime import datetime
from typing import List, Optional, Tuple

from infrastructure.logging import bind_notification_context, get_module_logger
from infrastructure.notifications.deduplication import Deduplicator
from infrastructure.notifications.dispatcher import ChannelDispatcher
from infrastructure.notifications.errors import (
    InvalidStatusTransitionError,
    NotFoundOrForbiddenError,
    NotificationError,
    ScheduleInPastError,
    TemplateNotFoundError,
)
from infrastructure.notifications.locks import ClaimRegistry
from infrastructure.notifications.models import (
    BulkCreateResult,
    BulkItemResult,
    Clock,
    CreateNotificationResult,
    DispatchOutcome,
    Notification,
    NotificationPreference,
    NotificationPriority,
    NotificationRequest,
    NotificationStatus,
    NotificationTemplate,
    NotificationType,
    ScheduledNotification,
    ScheduleReason,
    ScheduleStatus,
    TemplateStats,
    utc_now,
)
from infrastructure.notifications.preferences import PreferenceResolver
from infrastructure.notifications.queries import NotificationQueries
from infrastructure.notifications.quiet_hours import QuietHoursScheduler
from infrastructure.notifications.repository import NotificationRepository
from infrastructure.notifications.templates import RenderedContent, TemplateRenderer
from infrastructure.notifications.workers import DispatchQueue

logger = get_module_logger()


class NotificationService:
    """Creation, scheduling, cancellation and dispatch of notifications.

    Attributes:
        queries: Read-side and per-recipient mutation operations
        dispatcher: Channel fan-out, exposed for health checks
        claims: Per-notification claims; every attempt cycle runs under one
    """

    def __init__(
        self,
        repository: NotificationRepository,
        resolver: PreferenceResolver,
        renderer: TemplateRenderer,
        deduplicator: Deduplicator,
        quiet_hours: QuietHoursScheduler,
        dispatcher: ChannelDispatcher,
        dispatch_queue: DispatchQueue,
        queries: NotificationQueries,
        claims: Optional[ClaimRegistry] = None,
        default_max_retries: int = 3,
        default_locale: Optional[str] = None,
        claim_lease_seconds: int = 300,
        clock: Clock = utc_now,
    ):
        self._repository = repository
        self._resolver = resolver
        self._renderer = renderer
        self._deduplicator = deduplicator
        self._quiet_hours = quiet_hours
        self.dispatcher = dispatcher
        self.dispatch_queue = dispatch_queue
        self.queries = queries
        self.claims = claims or ClaimRegistry()
        self.default_max_retries = default_max_retries
        self.default_locale = default_locale
        self.claim_lease_seconds = claim_lease_seconds
        self._clock = clock

    # Creation

    def create_notification(self, request: NotificationRequest) -> CreateNotificationResult:
        """Create a notification and dispatch it now or after quiet hours.

        A live duplicate (same recipient, type and dedup key or batch id within
        the window) is returned instead of creating a second row.

        Raises:
            NoEligibleChannelError: no channel is eligible; nothing persisted
            TemplateNotFoundError: no explicit content and no active template
        """
        with self._deduplicator.guard(
            request.recipient_id, request.type, request.dedup_key, request.batch_id
        ):
            existing = self._deduplicator.find_existing(
                request.recipient_id, request.type, request.dedup_key, request.batch_id
            )
            if existing is not None:
                return CreateNotificationResult(
                    id=existing.id, status=existing.status, deduplicated=True
                )

            notification, preference = self._prepare(request)
            self._repository.create_notification(notification)
            self._deduplicator.remember(notification)

        with bind_notification_context(notification.id, notification.recipient_id):
            logger.info(
                "notification_created",
                notification_type=notification.type.value,
                priority=notification.priority.value,
                channels=[c.value for c in notification.resolved_channels],
            )

            deferral = self._quiet_hours.deferral_time(
                notification.created_at, preference, notification.priority
            )
            if deferral is not None:
                self._schedule(notification, deferral, ScheduleReason.QUIET_HOURS)
                return CreateNotificationResult(
                    id=notification.id, status=notification.status, scheduled_time=deferral
                )

            self._enqueue(notification.id)
        return CreateNotificationResult(id=notification.id, status=notification.status)

    def create_bulk(self, requests: List[NotificationRequest]) -> BulkCreateResult:
        """Create each request independently; one failure never aborts the rest."""
        results = []
        for index, request in enumerate(requests):
            try:
                created = self.create_notification(request)
                results.append(
                    BulkItemResult(
                        index=index,
                        success=True,
                        id=created.id,
                        status=created.status,
                        deduplicated=created.deduplicated,
                    )
                )
            except (NotificationError, ValueError) as e:
                logger.warning(
                    "bulk_item_failed",
                    index=index,
                    recipient_id=request.recipient_id,
                    error=str(e),
                )
                results.append(BulkItemResult(index=index, success=False, error=str(e)))

        successful = sum(1 for r in results if r.success)
        logger.info(
            "bulk_create_completed",
            total=len(requests),
            successful=successful,
            failed=len(requests) - successful,
        )
        return BulkCreateResult(
            total=len(requests),
            successful=successful,
            failed=len(requests) - successful,
            results=results,
        )

    def schedule_notification(
        self, request: NotificationRequest, scheduled_time: datetime
    ) -> CreateNotificationResult:
        """Create a notification that is dispatched at ``scheduled_time``.

        Raises:
            ScheduleInPastError: ``scheduled_time`` is not in the future
        """
        if scheduled_time.tzinfo is None:
            raise ValueError("scheduled_time must be timezone-aware")
        if scheduled_time <= self._clock():
            raise ScheduleInPastError(f"Scheduled time {scheduled_time.isoformat()} is not in the future")

        with self._deduplicator.guard(
            request.recipient_id, request.type, request.dedup_key, request.batch_id
        ):
            existing = self._deduplicator.find_existing(
                request.recipient_id, request.type, request.dedup_key, request.batch_id
            )
            if existing is not None:
                return CreateNotificationResult(
                    id=existing.id, status=existing.status, deduplicated=True
                )

            notification, _ = self._prepare(request)
            self._repository.create_notification(notification)
            self._deduplicator.remember(notification)

        self._schedule(notification, scheduled_time, ScheduleReason.REQUESTED)
        return CreateNotificationResult(
            id=notification.id, status=notification.status, scheduled_time=scheduled_time
        )

    # Cancellation

    def cancel_notification(self, recipient_id: str, notification_id: str) -> Notification:
        """Cancel a PENDING or FAILED notification and its pending schedules.

        Raises:
            NotFoundOrForbiddenError: missing, deleted, or owned by someone else
            InvalidStatusTransitionError: already finished or being dispatched
        """
        notification = self._owned(recipient_id, notification_id)

        with self.claims.claimed(notification_id, self.claim_lease_seconds) as acquired:
            if not acquired:
                raise InvalidStatusTransitionError(
                    notification_id, NotificationStatus.SENDING.value, NotificationStatus.CANCELLED.value
                )
            notification = self._owned(recipient_id, notification_id)
            now = self._clock()
            notification.transition_to(NotificationStatus.CANCELLED, now)
            notification.next_retry_at = None
            self._repository.update_notification(notification)

            for scheduled in self._repository.list_scheduled_for_notification(notification_id):
                if scheduled.status == ScheduleStatus.SCHEDULED:
                    scheduled.status = ScheduleStatus.CANCELLED
                    self._repository.update_scheduled(scheduled)

        logger.info(
            "notification_cancelled",
            notification_id=notification_id,
            recipient_id=recipient_id,
        )
        return notification

    def cancel_scheduled(
        self, scheduled_id: str, recipient_id: Optional[str] = None
    ) -> ScheduledNotification:
        """Cancel a scheduled notification and the PENDING row behind it.

        Raises:
            NotFoundOrForbiddenError: unknown id or owned by someone else
            InvalidStatusTransitionError: already fired or cancelled
        """
        scheduled = self._repository.get_scheduled(scheduled_id)
        if scheduled is None or (recipient_id is not None and scheduled.recipient_id != recipient_id):
            raise NotFoundOrForbiddenError(scheduled_id)
        if scheduled.status != ScheduleStatus.SCHEDULED:
            raise InvalidStatusTransitionError(
                scheduled_id, scheduled.status.value, ScheduleStatus.CANCELLED.value
            )

        self.cancel_notification(scheduled.recipient_id, scheduled.notification_id)
        return self._repository.get_scheduled(scheduled_id) or scheduled

    # Dispatch

    def dispatch(self, notification_id: str) -> Optional[DispatchOutcome]:
        """Run one attempt cycle under the notification's claim.

        Returns None when another worker holds the claim.
        """
        with bind_notification_context(notification_id):
            with self.claims.claimed(notification_id, self.claim_lease_seconds) as acquired:
                if not acquired:
                    logger.info("dispatch_already_claimed")
                    return None
                return self.dispatcher.dispatch(notification_id)

    def health_check(self) -> dict:
        return self.dispatcher.health_check()

    @property
    def repository(self) -> NotificationRepository:
        return self._repository

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting dispatches and drain the worker pools."""
        self.dispatch_queue.shutdown(wait=wait)
        self.dispatcher.executor.shutdown(wait=wait)
        logger.info("notification_service_stopped")

    # Preferences

    def get_preference(self, recipient_id: str) -> NotificationPreference:
        return self._resolver.get_preference(recipient_id)

    def save_preference(self, preference: NotificationPreference) -> NotificationPreference:
        stored = preference.model_copy(update={"updated_at": self._clock()})
        self._repository.save_preference(stored)
        logger.info("preference_saved", recipient_id=preference.recipient_id)
        return stored

    # Templates

    def upsert_template(self, template: NotificationTemplate) -> NotificationTemplate:
        return self._renderer.upsert_template(template)

    def delete_template(self, notification_type: NotificationType) -> bool:
        return self._renderer.delete_template(notification_type)

    def preview_template(
        self,
        notification_type: NotificationType,
        data: Optional[dict] = None,
        locale: Optional[str] = None,
        channel=None,
    ) -> RenderedContent:
        return self._renderer.preview(notification_type, data, locale=locale, channel=channel)

    def validate_template_data(
        self, notification_type: NotificationType, data: Optional[dict]
    ) -> List[str]:
        return self._renderer.validate_template_data(notification_type, data)

    def template_stats(self) -> List[TemplateStats]:
        return self._renderer.template_stats()

    # Internals

    def _prepare(self, request: NotificationRequest) -> Tuple[Notification, NotificationPreference]:
        preference = self._resolver.get_preference(request.recipient_id)

        template = None
        if not request.has_explicit_content:
            template = self._renderer.get_template(request.type)
            if template is None:
                raise TemplateNotFoundError(request.type.value)

        priority = request.priority or (
            template.default_priority if template else NotificationPriority.MEDIUM
        )
        channels = self._resolver.resolve(
            request.recipient_id,
            request.type,
            priority=priority,
            requested_channels=request.channels,
            preference=preference,
            template_channels=template.default_channels if template else None,
        )

        locale = request.locale or preference.locale or self.default_locale
        if template is not None:
            missing = self._renderer.validate_template_data(request.type, request.template_data)
            if missing:
                logger.warning(
                    "template_data_incomplete",
                    notification_type=request.type.value,
                    missing=missing,
                )
        rendered = self._renderer.render(
            request.type,
            data=request.template_data,
            title=request.title,
            content=request.content,
            locale=locale,
            record_usage=template is not None,
        )

        now = self._clock()
        notification = Notification(
            recipient_id=request.recipient_id,
            type=request.type,
            title=rendered.title,
            content=rendered.content,
            priority=priority,
            resolved_channels=channels,
            metadata=request.metadata,
            action_url=request.action_url,
            action_text=request.action_text,
            dedup_key=request.dedup_key,
            batch_id=request.batch_id,
            max_retries=(
                request.max_retries if request.max_retries is not None else self.default_max_retries
            ),
            locale=locale,
            template_data=request.template_data,
            explicit_content=request.has_explicit_content,
            created_at=now,
            updated_at=now,
        )
        return notification, preference

    def _schedule(
        self, notification: Notification, scheduled_time: datetime, reason: ScheduleReason
    ) -> ScheduledNotification:
        scheduled = ScheduledNotification(
            recipient_id=notification.recipient_id,
            notification_id=notification.id,
            payload=notification,
            scheduled_time=scheduled_time,
            reason=reason,
            max_retries=notification.max_retries,
            created_at=self._clock(),
        )
        self._repository.create_scheduled(scheduled)
        logger.info(
            "notification_deferred",
            notification_id=notification.id,
            scheduled_id=scheduled.id,
            scheduled_time=scheduled_time.isoformat(),
            reason=reason.value,
        )
        return scheduled

    def _enqueue(self, notification_id: str) -> None:
        try:
            self.dispatch_queue.submit(self.dispatch, notification_id)
        except RuntimeError as e:
            # row stays PENDING; the stale dispatch sweep picks it up
            logger.warning("dispatch_enqueue_failed", notification_id=notification_id, error=str(e))

    def _owned(self, recipient_id: str, notification_id: str) -> Notification:
        notification = self._repository.get_notification(notification_id)
        if (
            notification is None
            or notification.recipient_id != recipient_id
            or notification.is_deleted
        ):
            raise NotFoundOrForbiddenError(notification_id)
        return notification
