"""GC Notify integration for email and SMS delivery."""

from .client import (
    NotifyClient,
    create_jwt_token,
    epoch_seconds,
)

__all__ = [
    "NotifyClient",
    "create_jwt_token",
    "epoch_seconds",
]
