"""Typed metadata payloads per notification type.

Types listed in ``METADATA_MODELS`` have their metadata validated against a
pydantic model; extra keys are kept as given. Every other type keeps a plain
ordered ``str -> JSON value`` mapping.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")


class HealthAlertMetadata(_Payload):
    member_id: Optional[str] = None
    metric: Optional[str] = None
    value: Optional[float] = None
    threshold: Optional[float] = None
    unit: Optional[str] = None


class ExpiryAlertMetadata(_Payload):
    item_id: Optional[str] = None
    item_name: Optional[str] = None
    expires_at: Optional[datetime] = None
    days_left: Optional[int] = None


class BudgetWarningMetadata(_Payload):
    budget_id: Optional[str] = None
    category: Optional[str] = None
    spent: Optional[float] = None
    limit: Optional[float] = None
    percentage: Optional[float] = None


class TaskNotificationMetadata(_Payload):
    task_id: Optional[str] = None
    task_title: Optional[str] = None
    due_at: Optional[datetime] = None
    assigned_by: Optional[str] = None


# Keyed by NotificationType value to keep this module free of model imports
METADATA_MODELS: Dict[str, Type[_Payload]] = {
    "health_alert": HealthAlertMetadata,
    "expiry_alert": ExpiryAlertMetadata,
    "budget_warning": BudgetWarningMetadata,
    "task_notification": TaskNotificationMetadata,
}


def validate_metadata(notification_type: str, metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Validate ``metadata`` for ``notification_type`` and return it JSON-safe.

    Raises:
        pydantic.ValidationError: a typed field has the wrong type.
    """
    model = METADATA_MODELS.get(notification_type)
    if model is None:
        return dict(metadata)
    payload = model.model_validate(metadata)
    return payload.model_dump(mode="json", exclude_none=True)
