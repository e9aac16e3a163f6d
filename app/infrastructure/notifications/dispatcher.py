"""Channel dispatcher: concurrent fan-out of one notification to its channels.

One call to ``dispatch`` is one attempt cycle:

1. Move the notification to SENDING.
2. Send on every resolved channel that has neither succeeded before nor
   failed permanently, concurrently, waiting for all of them.
3. Record one delivery log per attempted channel.
4. Set the aggregate status: SENT when every attempted channel succeeded
   and no channel has failed permanently in any cycle, FAILED otherwise,
   and let the retry scheduler decide on a next attempt.

Callers must hold the notification's claim (see ``locks.ClaimRegistry``).

Usage Example:
    dispatcher = ChannelDispatcher(
        repository=repository,
        channels={Channel.IN_APP: InAppChannel(), Channel.EMAIL: email_channel},
        renderer=renderer,
        recorder=recorder,
        retry_scheduler=retry_scheduler,
        executor=ThreadPoolExecutor(max_workers=16),
    )

    outcome = dispatcher.dispatch(notification_id)
"""

import time
from concurrent.futures import ALL_COMPLETED, Executor, Future, wait
from dataclasses import dataclass
from typing import Dict, List, Optional

from infrastructure.logging import get_module_logger
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.errors import ChannelDeliveryError, TemplateNotFoundError
from infrastructure.notifications.models import (
    Channel,
    Clock,
    DispatchOutcome,
    Notification,
    NotificationStatus,
    Recipient,
    RenderedMessage,
    utc_now,
)
from infrastructure.notifications.preferences import PreferenceResolver
from infrastructure.notifications.recorder import DeliveryRecorder
from infrastructure.notifications.repository import NotificationRepository
from infrastructure.notifications.retry import RetryScheduler
from infrastructure.notifications.templates import TemplateRenderer

logger = get_module_logger()

DISPATCHABLE_STATUSES = (
    NotificationStatus.PENDING,
    NotificationStatus.SENDING,
    NotificationStatus.FAILED,
)


@dataclass
class ChannelResult:
    channel: Channel
    success: bool
    external_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    retryable: bool = False
    cost: float = 0.0
    processing_time_ms: int = 0


class ChannelDispatcher:
    """Multi-channel notification dispatcher.

    Attributes:
        channels: Adapter per channel; a resolved channel with no adapter is
            recorded as a permanent failure
        executor: Shared bounded pool for channel sends, so total provider
            concurrency stays bounded across all in-flight dispatches
    """

    def __init__(
        self,
        repository: NotificationRepository,
        channels: Dict[Channel, NotificationChannel],
        renderer: TemplateRenderer,
        recorder: DeliveryRecorder,
        retry_scheduler: RetryScheduler,
        executor: Executor,
        preferences: Optional[PreferenceResolver] = None,
        clock: Clock = utc_now,
    ):
        self._repository = repository
        self.channels = channels
        self._renderer = renderer
        self._recorder = recorder
        self._retry = retry_scheduler
        self.executor = executor
        self._preferences = preferences or PreferenceResolver(repository, clock=clock)
        self._clock = clock

        logger.info(
            "initialized_channel_dispatcher",
            channels=[c.value for c in channels],
        )

    def dispatch(self, notification_id: str) -> DispatchOutcome:
        notification = self._repository.get_notification(notification_id)
        if notification is None or notification.is_deleted:
            logger.info("dispatch_skipped_missing", notification_id=notification_id)
            return DispatchOutcome(
                notification_id=notification_id,
                status=NotificationStatus.CANCELLED,
                skipped=True,
            )
        if notification.status not in DISPATCHABLE_STATUSES:
            logger.info(
                "dispatch_skipped_status",
                notification_id=notification_id,
                status=notification.status.value,
            )
            return DispatchOutcome(
                notification_id=notification_id, status=notification.status, skipped=True
            )

        notification.transition_to(NotificationStatus.SENDING, self._clock())
        notification.next_retry_at = None
        self._repository.update_notification(notification)

        recipient = self._preferences.get_preference(notification.recipient_id).to_recipient()
        targets = self._targets(notification)

        logger.info(
            "dispatch_started",
            notification_id=notification.id,
            recipient_id=notification.recipient_id,
            channels=[c.value for c in targets],
            attempt=notification.retry_count,
        )

        results = self._send_all(notification, recipient, targets)

        for result in results:
            self._recorder.record(
                notification,
                result.channel,
                success=result.success,
                external_id=result.external_id,
                error=result.error,
                error_code=result.error_code,
                retryable=result.retryable,
                cost=result.cost,
                processing_time_ms=result.processing_time_ms,
            )

        return self._finish(notification, results)

    def health_check(self) -> Dict[str, bool]:
        """Check health of all channels.

        Returns:
            Dict mapping channel name to health status (True=healthy)
        """
        health_status = {}
        for channel, adapter in self.channels.items():
            try:
                health_status[channel.value] = adapter.health_check().is_success
            except Exception as e:
                logger.error(
                    "channel_health_check_failed",
                    channel=channel.value,
                    error=str(e),
                    exc_info=True,
                )
                health_status[channel.value] = False
        return health_status

    def _targets(self, notification: Notification) -> List[Channel]:
        done = self._recorder.successful_channels(notification.id)
        dead = self._recorder.permanently_failed_channels(notification.id)
        return [c for c in notification.resolved_channels if c not in done and c not in dead]

    def _send_all(
        self, notification: Notification, recipient: Recipient, targets: List[Channel]
    ) -> List[ChannelResult]:
        futures: Dict[Future, Channel] = {}
        for channel in targets:
            message = self._message_for(notification, channel)
            futures[self.executor.submit(self._send_one, channel, recipient, message)] = channel

        wait(list(futures), return_when=ALL_COMPLETED)

        results = []
        for future, channel in futures.items():
            error = future.exception()
            if error is None:
                results.append(future.result())
            else:
                # _send_one catches provider errors; this is a bug in the adapter glue
                logger.error(
                    "channel_future_failed",
                    notification_id=notification.id,
                    channel=channel.value,
                    error=str(error),
                )
                results.append(
                    ChannelResult(
                        channel=channel,
                        success=False,
                        error=str(error),
                        error_code="CHANNEL_EXCEPTION",
                        retryable=True,
                    )
                )
        return results

    def _send_one(
        self, channel: Channel, recipient: Recipient, message: RenderedMessage
    ) -> ChannelResult:
        adapter = self.channels.get(channel)
        if adapter is None:
            logger.warning(
                "channel_not_available",
                notification_id=message.notification_id,
                channel=channel.value,
                available_channels=[c.value for c in self.channels],
            )
            return ChannelResult(
                channel=channel,
                success=False,
                error=f"No adapter configured for {channel.value}",
                error_code="CHANNEL_UNAVAILABLE",
                retryable=False,
            )

        started = time.monotonic()
        try:
            external_id = adapter.send(recipient, message)
        except ChannelDeliveryError as e:
            elapsed = int((time.monotonic() - started) * 1000)
            logger.warning(
                "channel_send_failed",
                notification_id=message.notification_id,
                channel=channel.value,
                error=str(e),
                error_code=e.error_code,
                retryable=e.retryable,
            )
            return ChannelResult(
                channel=channel,
                success=False,
                error=str(e),
                error_code=e.error_code,
                retryable=e.retryable,
                processing_time_ms=elapsed,
            )
        except Exception as e:
            elapsed = int((time.monotonic() - started) * 1000)
            logger.error(
                "channel_exception",
                notification_id=message.notification_id,
                channel=channel.value,
                error=str(e),
                exc_info=True,
            )
            return ChannelResult(
                channel=channel,
                success=False,
                error=str(e),
                error_code="CHANNEL_EXCEPTION",
                retryable=True,
                processing_time_ms=elapsed,
            )

        return ChannelResult(
            channel=channel,
            success=True,
            external_id=external_id,
            cost=adapter.unit_cost,
            processing_time_ms=int((time.monotonic() - started) * 1000),
        )

    def _message_for(self, notification: Notification, channel: Channel) -> RenderedMessage:
        title, content = notification.title, notification.content
        if not notification.explicit_content:
            try:
                rendered = self._renderer.render(
                    notification.type,
                    data=notification.template_data,
                    locale=notification.locale,
                    channel=channel,
                )
                title, content = rendered.title, rendered.content
            except TemplateNotFoundError:
                # template removed after creation; the stored content is still valid
                pass
        return RenderedMessage(
            notification_id=notification.id,
            title=title,
            content=content,
            priority=notification.priority,
            action_url=notification.action_url,
            action_text=notification.action_text,
            metadata=notification.metadata,
        )

    def _finish(self, notification: Notification, results: List[ChannelResult]) -> DispatchOutcome:
        now = self._clock()
        succeeded = [r.channel for r in results if r.success]
        failed = [r for r in results if not r.success]
        # permanent failures from earlier cycles still count against the aggregate
        dead = self._recorder.permanently_failed_channels(notification.id)
        dead.intersection_update(notification.resolved_channels)

        if not failed and not dead:
            notification.transition_to(NotificationStatus.SENT, now)
            notification.sent_at = now
            notification.next_retry_at = None
        else:
            notification.transition_to(NotificationStatus.FAILED, now)
            if succeeded and notification.sent_at is None:
                notification.sent_at = now
            self._retry.schedule(notification, any(r.retryable for r in failed))

        self._repository.update_notification(notification)

        logger.info(
            "dispatch_completed",
            notification_id=notification.id,
            status=notification.status.value,
            succeeded=[c.value for c in succeeded],
            failed=[r.channel.value for r in failed],
            permanently_failed=sorted(c.value for c in dead),
            retry_count=notification.retry_count,
            next_retry_at=notification.next_retry_at.isoformat()
            if notification.next_retry_at
            else None,
        )

        return DispatchOutcome(
            notification_id=notification.id,
            status=notification.status,
            attempted=[r.channel for r in results],
            succeeded=succeeded,
            failed=[r.channel for r in failed],
            next_retry_at=notification.next_retry_at,
        )
