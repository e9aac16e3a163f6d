"""Unit tests for notification service construction."""

import pytest

from infrastructure.configuration import Settings
from infrastructure.configuration.integrations import NotifySettings, PushSettings, SlackSettings
from infrastructure.notifications.channels import (
    ChatChannel,
    EmailChannel,
    InAppChannel,
    PushChannel,
    SMSChannel,
)
from infrastructure.notifications.factory import build_channels, build_notification_service
from infrastructure.notifications.models import Channel
from infrastructure.notifications.repository import InMemoryNotificationRepository


@pytest.fixture
def unconfigured_settings():
    return Settings(
        notify=NotifySettings(NOTIFY_API_URL="", NOTIFY_USER_NAME=None, NOTIFY_CLIENT_SECRET=None),
        slack=SlackSettings(SLACK_TOKEN=""),
        push=PushSettings(PUSH_GATEWAY_URL=""),
    )


@pytest.fixture
def configured_settings():
    return Settings(
        notify=NotifySettings(
            NOTIFY_API_URL="https://api.notification.example",
            NOTIFY_USER_NAME="service-id",
            NOTIFY_CLIENT_SECRET="secret",
        ),
        slack=SlackSettings(SLACK_TOKEN="xoxb-test"),
        push=PushSettings(PUSH_GATEWAY_URL="https://push.example/send"),
    )


@pytest.mark.unit
class TestBuildChannels:
    """Tests for build_channels."""

    def test_in_app_only_when_nothing_configured(self, unconfigured_settings):
        channels = build_channels(unconfigured_settings)

        assert list(channels) == [Channel.IN_APP]
        assert isinstance(channels[Channel.IN_APP], InAppChannel)

    def test_all_channels_when_configured(self, configured_settings):
        channels = build_channels(configured_settings)

        assert set(channels) == set(Channel)
        assert isinstance(channels[Channel.EMAIL], EmailChannel)
        assert isinstance(channels[Channel.SMS], SMSChannel)
        assert isinstance(channels[Channel.CHAT], ChatChannel)
        assert isinstance(channels[Channel.PUSH], PushChannel)


@pytest.mark.unit
class TestBuildNotificationService:
    """Tests for build_notification_service."""

    def test_wires_settings(self, unconfigured_settings, clock):
        repository = InMemoryNotificationRepository()
        service = build_notification_service(
            unconfigured_settings, repository=repository, clock=clock
        )
        try:
            assert service.repository is repository
            assert service.default_max_retries == 3
            assert service.default_locale == "en"
            assert service.claim_lease_seconds == 300
            assert service.dispatch_queue.max_workers == 8
            assert list(service.dispatcher.channels) == [Channel.IN_APP]
        finally:
            service.shutdown()

    def test_explicit_channels_used(self, unconfigured_settings, stub_channels):
        service = build_notification_service(unconfigured_settings, channels=stub_channels)
        try:
            assert service.dispatcher.channels is stub_channels
            assert isinstance(service.repository, InMemoryNotificationRepository)
        finally:
            service.shutdown()
