"""Infrastructure modules for the notification service.

Centralized infrastructure components:
- configuration: Settings management (Settings, NotificationSettings, RetrySettings)
- logging: Structured logging and request context (get_module_logger)
- idempotency: Dedup key cache
- notifications: Multi-channel notification subsystem
- operations: Operation results and error classification
- services: Dependency injection services (SettingsDep, NotificationServiceDep, get_settings)
"""

# Configuration
from infrastructure.configuration import Settings

# Logging
from infrastructure.logging import get_module_logger

# Operations
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

# Dependency Injection Services
from infrastructure.services import (
    NotificationServiceDep,
    SettingsDep,
    get_notification_service,
    get_settings,
)

__all__ = [
    # Configuration
    "Settings",
    # Logging
    "get_module_logger",
    # Operations
    "OperationResult",
    "OperationStatus",
    # Dependency Injection Services
    "NotificationServiceDep",
    "SettingsDep",
    "get_notification_service",
    "get_settings",
]
