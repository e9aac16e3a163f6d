from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi import status as http_status
from fastapi.responses import Response
from pydantic import BaseModel, Field

from api.dependencies.rate_limits import get_limiter
from infrastructure.notifications import (
    Channel,
    NotificationTemplate,
    NotificationType,
)
from infrastructure.services import NotificationServiceDep

router = APIRouter(prefix="/templates", tags=["Templates"])
limiter = get_limiter()


class TemplatePreviewRequest(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)
    locale: Optional[str] = None
    channel: Optional[Channel] = None


@router.get("/stats")
@limiter.limit("30/minute")
def template_stats(
    request: Request,  # pylint: disable=unused-argument
    service: NotificationServiceDep,
):
    return service.template_stats()


@router.put("/{notification_type}")
@limiter.limit("20/minute")
def upsert_template(
    request: Request,  # pylint: disable=unused-argument
    notification_type: NotificationType,
    body: NotificationTemplate,
    service: NotificationServiceDep,
):
    """Create or replace the template for a notification type."""
    template = body.model_copy(update={"type": notification_type})
    return service.upsert_template(template)


@router.delete("/{notification_type}", status_code=http_status.HTTP_204_NO_CONTENT)
@limiter.limit("20/minute")
def delete_template(
    request: Request,  # pylint: disable=unused-argument
    notification_type: NotificationType,
    service: NotificationServiceDep,
):
    if not service.delete_template(notification_type):
        raise HTTPException(status_code=404, detail="Template not found")
    return Response(status_code=http_status.HTTP_204_NO_CONTENT)


@router.post("/{notification_type}/preview")
@limiter.limit("60/minute")
def preview_template(
    request: Request,  # pylint: disable=unused-argument
    notification_type: NotificationType,
    body: TemplatePreviewRequest,
    service: NotificationServiceDep,
):
    """Render the stored template without counting usage."""
    rendered = service.preview_template(
        notification_type, body.data, locale=body.locale, channel=body.channel
    )
    missing = service.validate_template_data(notification_type, body.data)
    return {"title": rendered.title, "content": rendered.content, "missing_variables": missing}
