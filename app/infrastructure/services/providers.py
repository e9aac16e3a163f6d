"""
Factory functions for dependency injection.

Provides application-scoped providers for core infrastructure services.
"""

from functools import lru_cache

from fastapi import Request

from infrastructure.configuration import Settings
from infrastructure.notifications import NotificationService


@lru_cache
def get_settings() -> Settings:
    """
    Get application-scoped settings singleton.

    This is the single source of truth for settings across the entire application.
    The @lru_cache decorator ensures only ONE instance is created per process.

    Infrastructure packages should use this directly:
        from infrastructure.services.providers import get_settings
        settings = get_settings()

    Application code should use the DI type alias for testability:
        from infrastructure.services import SettingsDep
        @router.get("/config")
        def get_config(settings: SettingsDep):
            return settings.model_dump()

    Returns:
        Settings: Cached settings instance loaded from environment.
    """
    return Settings()


def get_notification_service(request: Request) -> NotificationService:
    """
    Get the notification service built during application start-up.

    The service is constructed once by the lifespan handler and stored on
    ``app.state``; tests swap it with ``app.dependency_overrides``.

    Usage:
        @router.get("/notifications")
        def list_notifications(service: NotificationServiceDep):
            return service.queries.list_notifications(recipient_id)
    """
    return request.app.state.notification_service
