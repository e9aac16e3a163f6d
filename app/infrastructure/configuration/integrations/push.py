"""Push gateway integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class PushSettings(IntegrationSettings):
    """HTTP push gateway configuration.

    Environment Variables:
        PUSH_GATEWAY_URL: Endpoint accepting device-token push requests
        PUSH_API_KEY: Bearer token sent to the gateway
        PUSH_TIMEOUT_SECONDS: Request timeout (default: 30)
    """

    PUSH_GATEWAY_URL: str = Field(default="", alias="PUSH_GATEWAY_URL")
    PUSH_API_KEY: str = Field(default="", alias="PUSH_API_KEY")
    PUSH_TIMEOUT_SECONDS: int = Field(default=30, alias="PUSH_TIMEOUT_SECONDS", ge=1)
