"""Fixtures for end-to-end notification flows."""

from unittest.mock import MagicMock

import pytest

from infrastructure.notifications import Channel
from infrastructure.notifications.channels.email import EmailChannel
from infrastructure.notifications.channels.in_app import InAppChannel
from infrastructure.notifications.channels.sms import SMSChannel
from infrastructure.operations import OperationResult
from integrations.notify.client import NotifyClient


@pytest.fixture
def notify_client():
    """GC Notify client double accepting every send."""
    client = MagicMock(spec=NotifyClient)
    client.send_email.return_value = OperationResult.success(data={"id": "notify-email-1"})
    client.send_sms.return_value = OperationResult.success(data={"id": "notify-sms-1"})
    return client


@pytest.fixture
def notify_channels(notify_client):
    """Real adapters for IN_APP, EMAIL and SMS over the client double."""
    return {
        Channel.IN_APP: InAppChannel(),
        Channel.EMAIL: EmailChannel(notify_client),
        Channel.SMS: SMSChannel(notify_client),
    }


@pytest.fixture
def saved_preference(repository, preference_factory):
    """Persist a preference for user-1 and return it."""

    def _factory(**overrides):
        preference = preference_factory(**overrides)
        repository.save_preference(preference)
        return preference

    return _factory
