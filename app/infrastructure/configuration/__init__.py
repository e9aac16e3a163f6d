"""Infrastructure configuration module - public API.

Centralized configuration for the notification service using Pydantic
BaseSettings with domain-based organization. There is no module level
instance; use ``infrastructure.services.get_settings()``.

Exports:
    Settings: Main settings class (for testing/overrides)
    NotificationSettings: Notification feature settings (for testing)
    RetrySettings: Retry system settings class (for testing)

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()

    retry_enabled = settings.retry.enabled

    if settings.is_production:
        # Production-specific logic...
    ```
"""

from infrastructure.configuration.settings import Settings
from infrastructure.configuration.features.notifications import NotificationSettings
from infrastructure.configuration.infrastructure.retry import RetrySettings

__all__ = ["Settings", "NotificationSettings", "RetrySettings"]
