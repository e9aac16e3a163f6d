"""Feature-level fixtures for notification component tests."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from infrastructure.notifications.dispatcher import ChannelDispatcher
from infrastructure.notifications.preferences import PreferenceResolver
from infrastructure.notifications.recorder import DeliveryRecorder
from infrastructure.notifications.retry import RetryScheduler
from infrastructure.notifications.templates import TemplateRenderer


@pytest.fixture
def dispatcher_factory(repository, clock):
    """Factory for ChannelDispatcher wired to the shared repository and clock.

    Example:
        dispatcher = dispatcher_factory({Channel.IN_APP: stub})
        outcome = dispatcher.dispatch(notification.id)
    """
    executors = []

    def _factory(channels, max_workers=8, retry_enabled=True):
        executor = ThreadPoolExecutor(max_workers=max_workers)
        executors.append(executor)
        return ChannelDispatcher(
            repository=repository,
            channels=channels,
            renderer=TemplateRenderer(repository, clock=clock),
            recorder=DeliveryRecorder(repository, clock=clock),
            retry_scheduler=RetryScheduler(
                base_delay_seconds=60, max_delay_seconds=3600, enabled=retry_enabled, clock=clock
            ),
            executor=executor,
            preferences=PreferenceResolver(repository, clock=clock),
            clock=clock,
        )

    yield _factory

    for executor in executors:
        executor.shutdown(wait=True)


@pytest.fixture
def stored_notification(repository, notification_factory):
    """Factory persisting a notification and returning it.

    Example:
        notification = stored_notification(resolved_channels=[Channel.IN_APP, Channel.SMS])
    """

    def _factory(**overrides):
        notification = notification_factory(**overrides)
        repository.create_notification(notification)
        return notification

    return _factory
