"""
Type aliases for FastAPI dependency injection.

Provides annotated type hints for common infrastructure dependencies.
"""

from typing import Annotated

from fastapi import Depends, Header

from infrastructure.configuration import Settings
from infrastructure.notifications import NotificationService
from infrastructure.services.providers import get_notification_service, get_settings


def get_recipient_id(
    x_recipient_id: Annotated[str, Header(alias="X-Recipient-ID", min_length=1)],
) -> str:
    """Acting recipient, set by the authenticating gateway in front of the API."""
    return x_recipient_id


# Settings dependency
SettingsDep = Annotated[Settings, Depends(get_settings)]

# Notification service built at start-up
NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]

# Recipient the request acts on behalf of
RecipientIdDep = Annotated[str, Depends(get_recipient_id)]

__all__ = [
    "SettingsDep",
    "NotificationServiceDep",
    "RecipientIdDep",
]
