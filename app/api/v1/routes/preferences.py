from typing import Dict, List, Optional

from fastapi import APIRouter, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, Field, ValidationError

from api.dependencies.rate_limits import get_limiter
from infrastructure.notifications import Channel, NotificationPreference, NotificationType
from infrastructure.services import NotificationServiceDep, RecipientIdDep

router = APIRouter(prefix="/preferences", tags=["Preferences"])
limiter = get_limiter()


class PreferenceUpdate(BaseModel):
    """Preference fields a recipient may change; omitted fields keep their value."""

    enabled: Optional[bool] = None
    quiet_hours_start: Optional[int] = Field(default=None, ge=0, le=23)
    quiet_hours_end: Optional[int] = Field(default=None, ge=0, le=23)
    timezone: Optional[str] = None
    locale: Optional[str] = None
    type_enabled: Optional[Dict[NotificationType, bool]] = None
    type_channels: Optional[Dict[NotificationType, List[Channel]]] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    chat_user_id: Optional[str] = None
    push_tokens: Optional[List[str]] = None
    daily_max_total: Optional[int] = Field(default=None, ge=0)
    daily_max_per_channel: Optional[Dict[Channel, int]] = None


@router.get("")
@limiter.limit("60/minute")
def get_preference(
    request: Request,  # pylint: disable=unused-argument
    recipient_id: RecipientIdDep,
    service: NotificationServiceDep,
):
    return service.get_preference(recipient_id)


@router.put("")
@limiter.limit("20/minute")
def update_preference(
    request: Request,  # pylint: disable=unused-argument
    body: PreferenceUpdate,
    recipient_id: RecipientIdDep,
    service: NotificationServiceDep,
):
    """Merge the given fields into the recipient's stored preference."""
    current = service.get_preference(recipient_id)
    merged = current.model_dump()
    merged.update(body.model_dump(exclude_unset=True))
    merged["recipient_id"] = recipient_id
    try:
        preference = NotificationPreference.model_validate(merged)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_context=False, include_url=False)) from e
    return service.save_preference(preference)
