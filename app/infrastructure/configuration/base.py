"""Base classes for settings sections.

Every section reads the process environment and ``.env`` with
case-sensitive names and ignores variables it does not declare.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class _EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


class IntegrationSettings(_EnvSettings):
    """Delivery provider credentials and endpoints."""


class FeatureSettings(_EnvSettings):
    """Notification behavior: windows, caches, worker pools."""


class InfrastructureSettings(_EnvSettings):
    """Retry, idempotency and HTTP server configuration."""
