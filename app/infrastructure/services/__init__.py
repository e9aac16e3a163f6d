"""
Dependency injection services.

Provides type aliases and provider functions for FastAPI dependency injection.
"""

from infrastructure.services.dependencies import (
    SettingsDep,
    NotificationServiceDep,
    RecipientIdDep,
    get_recipient_id,
)
from infrastructure.services.providers import (
    get_settings,
    get_notification_service,
)

__all__ = [
    "SettingsDep",
    "NotificationServiceDep",
    "RecipientIdDep",
    "get_recipient_id",
    "get_settings",
    "get_notification_service",
]
