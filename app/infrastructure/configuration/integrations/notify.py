"""GC Notify integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class NotifySettings(IntegrationSettings):
    """GC Notify API configuration used by the email and SMS channels.

    Environment Variables:
        NOTIFY_USER_NAME: GC Notify service id used as the JWT issuer
        NOTIFY_CLIENT_SECRET: GC Notify API key secret
        NOTIFY_API_URL: GC Notify API endpoint URL
        NOTIFY_EMAIL_TEMPLATE_ID: Pass-through template with title/body personalisation
        NOTIFY_SMS_TEMPLATE_ID: Pass-through template with body personalisation

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        api_url = settings.notify.NOTIFY_API_URL
        ```
    """

    NOTIFY_USER_NAME: str | None = Field(default=None, alias="NOTIFY_USER_NAME")
    NOTIFY_CLIENT_SECRET: str | None = Field(default=None, alias="NOTIFY_CLIENT_SECRET")
    NOTIFY_API_URL: str = Field(default="", alias="NOTIFY_API_URL")
    NOTIFY_EMAIL_TEMPLATE_ID: str = Field(default="", alias="NOTIFY_EMAIL_TEMPLATE_ID")
    NOTIFY_SMS_TEMPLATE_ID: str = Field(default="", alias="NOTIFY_SMS_TEMPLATE_ID")

    @property
    def is_configured(self) -> bool:
        """True when enough is set to call the API."""
        return bool(
            self.NOTIFY_API_URL and self.NOTIFY_USER_NAME and self.NOTIFY_CLIENT_SECRET
        )
