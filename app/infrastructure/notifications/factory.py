"""Explicit construction of the notification service.

``build_notification_service`` is called once at start-up (see
``server.lifespan``); the result is stored on ``app.state`` and shared by
request handlers and background sweeps. There is no module-level instance.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

from slack_sdk import WebClient

from infrastructure.configuration import Settings
from infrastructure.idempotency import IdempotencyKeyBuilder, create_cache
from infrastructure.logging import get_module_logger
from infrastructure.notifications.channels import (
    ChatChannel,
    EmailChannel,
    InAppChannel,
    NotificationChannel,
    PushChannel,
    SMSChannel,
)
from infrastructure.notifications.deduplication import Deduplicator
from infrastructure.notifications.dispatcher import ChannelDispatcher
from infrastructure.notifications.locks import ClaimRegistry
from infrastructure.notifications.models import Channel, Clock, utc_now
from infrastructure.notifications.preferences import PreferenceResolver
from infrastructure.notifications.queries import NotificationQueries
from infrastructure.notifications.quiet_hours import QuietHoursScheduler
from infrastructure.notifications.recorder import DeliveryRecorder
from infrastructure.notifications.repository import (
    InMemoryNotificationRepository,
    NotificationRepository,
)
from infrastructure.notifications.retry import RetryScheduler
from infrastructure.notifications.service import NotificationService
from infrastructure.notifications.templates import TemplateRenderer
from infrastructure.notifications.workers import DispatchQueue
from integrations.notify import NotifyClient

logger = get_module_logger()


def build_channels(settings: Settings) -> Dict[Channel, NotificationChannel]:
    """Adapters for every channel whose provider is configured.

    IN_APP is always available. A channel left out here is recorded as a
    permanent CHANNEL_UNAVAILABLE failure when a notification resolves to it.
    """
    channels: Dict[Channel, NotificationChannel] = {Channel.IN_APP: InAppChannel()}

    if settings.notify.is_configured:
        notify_client = NotifyClient(settings.notify)
        channels[Channel.EMAIL] = EmailChannel(notify_client)
        channels[Channel.SMS] = SMSChannel(notify_client)
    else:
        logger.warning("notify_not_configured", disabled_channels=["email", "sms"])

    if settings.slack.SLACK_TOKEN:
        channels[Channel.CHAT] = ChatChannel(WebClient(token=settings.slack.SLACK_TOKEN))
    else:
        logger.warning("slack_not_configured", disabled_channels=["chat"])

    if settings.push.PUSH_GATEWAY_URL:
        channels[Channel.PUSH] = PushChannel(settings.push)
    else:
        logger.warning("push_gateway_not_configured", disabled_channels=["push"])

    return channels


def build_notification_service(
    settings: Settings,
    repository: Optional[NotificationRepository] = None,
    channels: Optional[Dict[Channel, NotificationChannel]] = None,
    clock: Clock = utc_now,
) -> NotificationService:
    """Wire every notification component from settings.

    Args:
        settings: Application settings
        repository: Store to use; an in-memory store when omitted
        channels: Adapters to use; built from provider settings when omitted
        clock: Time source shared by every component
    """
    features = settings.notifications
    repository = repository or InMemoryNotificationRepository()
    channels = channels if channels is not None else build_channels(settings)

    resolver = PreferenceResolver(repository, clock=clock)
    renderer = TemplateRenderer(
        repository, cache_ttl_seconds=features.template_cache_ttl_seconds, clock=clock
    )
    recorder = DeliveryRecorder(repository, clock=clock)
    deduplicator = Deduplicator(
        repository,
        create_cache(),
        window_seconds=features.dedup_window_seconds,
        key_builder=IdempotencyKeyBuilder(namespace=settings.idempotency.IDEMPOTENCY_NAMESPACE),
        cache_ttl_seconds=settings.idempotency.IDEMPOTENCY_TTL_SECONDS,
        clock=clock,
    )
    retry_scheduler = RetryScheduler(
        base_delay_seconds=settings.retry.base_delay_seconds,
        max_delay_seconds=settings.retry.max_delay_seconds,
        enabled=settings.retry.enabled,
        clock=clock,
    )
    dispatcher = ChannelDispatcher(
        repository=repository,
        channels=channels,
        renderer=renderer,
        recorder=recorder,
        retry_scheduler=retry_scheduler,
        executor=ThreadPoolExecutor(
            max_workers=features.channel_workers, thread_name_prefix="notification-channel"
        ),
        preferences=resolver,
        clock=clock,
    )

    service = NotificationService(
        repository=repository,
        resolver=resolver,
        renderer=renderer,
        deduplicator=deduplicator,
        quiet_hours=QuietHoursScheduler(),
        dispatcher=dispatcher,
        dispatch_queue=DispatchQueue(max_workers=features.dispatch_workers),
        queries=NotificationQueries(repository, recorder, clock=clock),
        claims=ClaimRegistry(),
        default_max_retries=features.default_max_retries,
        default_locale=features.default_locale,
        claim_lease_seconds=settings.retry.claim_lease_seconds,
        clock=clock,
    )

    logger.info(
        "notification_service_built",
        channels=[c.value for c in channels],
        dispatch_workers=features.dispatch_workers,
        channel_workers=features.channel_workers,
    )
    return service
