from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Query, Request
from fastapi import status as http_status
from pydantic import BaseModel, Field, field_validator

from api.dependencies.rate_limits import get_limiter
from infrastructure.notifications import (
    NotificationQuery,
    NotificationRequest,
    NotificationStatus,
    NotificationType,
)
from infrastructure.services import NotificationServiceDep, RecipientIdDep

router = APIRouter(prefix="/notifications", tags=["Notifications"])
limiter = get_limiter()


class ScheduleNotificationRequest(NotificationRequest):
    scheduled_time: datetime

    @field_validator("scheduled_time")
    @classmethod
    def require_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError("scheduled_time must include a timezone offset")
        return v


class BulkNotificationRequest(BaseModel):
    notifications: List[NotificationRequest] = Field(..., min_length=1, max_length=100)


class NotificationIds(BaseModel):
    ids: List[str] = Field(..., min_length=1, max_length=100)


@router.post("", status_code=http_status.HTTP_202_ACCEPTED)
@limiter.limit("60/minute")
def create_notification(
    request: Request,  # pylint: disable=unused-argument
    body: NotificationRequest,
    service: NotificationServiceDep,
):
    """
    Create a notification.

    Returns as soon as the notification is stored; delivery happens in the
    background. A repeated dedup key within the dedup window returns the
    original notification with ``deduplicated`` set.
    """
    return service.create_notification(body)


@router.post("/bulk", status_code=http_status.HTTP_202_ACCEPTED)
@limiter.limit("10/minute")
def create_bulk(
    request: Request,  # pylint: disable=unused-argument
    body: BulkNotificationRequest,
    service: NotificationServiceDep,
):
    """Create many notifications; each item succeeds or fails on its own."""
    return service.create_bulk(body.notifications)


@router.post("/schedule", status_code=http_status.HTTP_202_ACCEPTED)
@limiter.limit("30/minute")
def schedule_notification(
    request: Request,  # pylint: disable=unused-argument
    body: ScheduleNotificationRequest,
    service: NotificationServiceDep,
):
    scheduled_time = body.scheduled_time
    notification_request = NotificationRequest.model_validate(
        body.model_dump(exclude={"scheduled_time"})
    )
    return service.schedule_notification(notification_request, scheduled_time)


@router.get("")
@limiter.limit("120/minute")
def list_notifications(
    request: Request,  # pylint: disable=unused-argument
    recipient_id: RecipientIdDep,
    service: NotificationServiceDep,
    type: Optional[NotificationType] = None,  # pylint: disable=redefined-builtin
    status: Optional[NotificationStatus] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    search: Optional[str] = None,
    include_read: bool = False,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    """List the recipient's notifications, newest first."""
    query = NotificationQuery(
        type=type,
        status=status,
        date_from=date_from,
        date_to=date_to,
        search=search,
        include_read=include_read,
        limit=limit,
        offset=offset,
    )
    return service.queries.list_notifications(recipient_id, query)


@router.get("/unread-count")
@limiter.limit("120/minute")
def unread_count(
    request: Request,  # pylint: disable=unused-argument
    recipient_id: RecipientIdDep,
    service: NotificationServiceDep,
):
    return {"count": service.queries.unread_count(recipient_id)}


@router.get("/stats")
@limiter.limit("30/minute")
def recipient_stats(
    request: Request,  # pylint: disable=unused-argument
    recipient_id: RecipientIdDep,
    service: NotificationServiceDep,
    days: int = Query(default=30, ge=1, le=365),
):
    return service.queries.recipient_stats(recipient_id, days)


@router.post("/read-all")
@limiter.limit("30/minute")
def mark_all_read(
    request: Request,  # pylint: disable=unused-argument
    recipient_id: RecipientIdDep,
    service: NotificationServiceDep,
):
    return {"updated": service.queries.mark_all_read(recipient_id)}


@router.post("/batch/read")
@limiter.limit("30/minute")
def batch_mark_read(
    request: Request,  # pylint: disable=unused-argument
    body: NotificationIds,
    recipient_id: RecipientIdDep,
    service: NotificationServiceDep,
):
    return {"updated": service.queries.batch_mark_read(recipient_id, body.ids)}


@router.post("/batch/delete")
@limiter.limit("30/minute")
def batch_delete(
    request: Request,  # pylint: disable=unused-argument
    body: NotificationIds,
    recipient_id: RecipientIdDep,
    service: NotificationServiceDep,
):
    return {"deleted": service.queries.batch_delete(recipient_id, body.ids)}


@router.post("/scheduled/{scheduled_id}/cancel")
@limiter.limit("30/minute")
def cancel_scheduled(
    request: Request,  # pylint: disable=unused-argument
    scheduled_id: str,
    recipient_id: RecipientIdDep,
    service: NotificationServiceDep,
):
    return service.cancel_scheduled(scheduled_id, recipient_id)


@router.get("/{notification_id}")
@limiter.limit("120/minute")
def get_notification(
    request: Request,  # pylint: disable=unused-argument
    notification_id: str,
    recipient_id: RecipientIdDep,
    service: NotificationServiceDep,
):
    return service.queries.get_notification(recipient_id, notification_id)


@router.get("/{notification_id}/deliveries")
@limiter.limit("60/minute")
def delivery_history(
    request: Request,  # pylint: disable=unused-argument
    notification_id: str,
    recipient_id: RecipientIdDep,
    service: NotificationServiceDep,
):
    return service.queries.delivery_history(recipient_id, notification_id)


@router.post("/{notification_id}/read")
@limiter.limit("120/minute")
def mark_read(
    request: Request,  # pylint: disable=unused-argument
    notification_id: str,
    recipient_id: RecipientIdDep,
    service: NotificationServiceDep,
):
    return service.queries.mark_read(recipient_id, notification_id)


@router.post("/{notification_id}/cancel")
@limiter.limit("30/minute")
def cancel_notification(
    request: Request,  # pylint: disable=unused-argument
    notification_id: str,
    recipient_id: RecipientIdDep,
    service: NotificationServiceDep,
):
    return service.cancel_notification(recipient_id, notification_id)


@router.delete("/{notification_id}", status_code=http_status.HTTP_204_NO_CONTENT)
@limiter.limit("60/minute")
def delete_notification(
    request: Request,  # pylint: disable=unused-argument
    notification_id: str,
    recipient_id: RecipientIdDep,
    service: NotificationServiceDep,
):
    service.queries.delete_notification(recipient_id, notification_id)
