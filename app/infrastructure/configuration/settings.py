"""Notification service configuration settings - main aggregator."""

from pydantic_settings import BaseSettings, SettingsConfigDict

# Integration settings
from infrastructure.configuration.integrations import (
    NotifySettings,
    PushSettings,
    SlackSettings,
)

# Feature settings
from infrastructure.configuration.features import NotificationSettings

# Infrastructure settings
from infrastructure.configuration.infrastructure import (
    IdempotencySettings,
    RetrySettings,
    ServerSettings,
)


SECTIONS = {
    "notify": NotifySettings,
    "slack": SlackSettings,
    "push": PushSettings,
    "notifications": NotificationSettings,
    "server": ServerSettings,
    "idempotency": IdempotencySettings,
    "retry": RetrySettings,
}


class Settings(BaseSettings):
    """Notification service configuration settings - main aggregator.

    Aggregates all domain-specific settings into a single configuration object.
    Settings are organized by concern:

    - **Integrations**: Delivery providers (GC Notify, Slack, push gateway)
    - **Features**: Notification behavior (dedup window, caches, worker pools)
    - **Infrastructure**: Core system configurations (retry, idempotency, server)

    Environment Variables:
        PREFIX: Environment prefix for multi-tenant deployments
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        GIT_SHA: Git commit SHA for deployment tracking

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        # Access integration settings
        slack_token = settings.slack.SLACK_TOKEN

        # Access feature settings
        window = settings.notifications.dedup_window_seconds

        # Access infrastructure settings
        if settings.retry.enabled:
            base = settings.retry.base_delay_seconds

        # Check environment
        if settings.is_production:
            # Production-specific logic...
        ```
    """

    # Application-level settings
    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"
    GIT_SHA: str = "Unknown"

    # Integration settings
    notify: NotifySettings
    slack: SlackSettings
    push: PushSettings

    # Feature settings
    notifications: NotificationSettings

    # Infrastructure settings
    server: ServerSettings
    idempotency: IdempotencySettings
    retry: RetrySettings

    @property
    def is_production(self) -> bool:
        """Production deployments run without a PREFIX."""
        return not bool(self.PREFIX)

    def __init__(self, **kwargs):
        """Build every section not passed explicitly from the environment."""
        for name, section_class in SECTIONS.items():
            kwargs.setdefault(name, section_class())
        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )
