"""Notification system core models.

Pydantic models for notifications, recipient preferences, delivery logs,
scheduled notifications and templates, plus the request/response shapes
used by the service and the API layer.

Enum parsing is case-insensitive (``"EMAIL"``, ``"email"`` and ``"Email"``
are the same channel) and the chat channel also accepts the ``wechat`` and
``slack`` aliases.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import pytz
from pydantic import BaseModel, Field, field_validator, model_validator
from pytz.tzinfo import BaseTzInfo

from infrastructure.notifications.errors import InvalidStatusTransitionError
from infrastructure.notifications.metadata import validate_metadata

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class _CaseInsensitiveEnum(str, Enum):
    """String enum whose lookup ignores case."""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class Channel(_CaseInsensitiveEnum):
    """Delivery medium."""

    IN_APP = "in_app"
    EMAIL = "email"
    SMS = "sms"
    CHAT = "chat"
    PUSH = "push"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str) and value.strip().lower() in CHANNEL_ALIASES:
            return cls(CHANNEL_ALIASES[value.strip().lower()])
        return super()._missing_(value)


CHANNEL_ALIASES = {"wechat": "chat", "slack": "chat", "inapp": "in_app"}


def parse_channels(values: Optional[List[Any]]) -> Optional[List[Channel]]:
    """Normalize a list of channel names, dropping duplicates, keeping order."""
    if values is None:
        return None
    channels: List[Channel] = []
    for value in values:
        channel = value if isinstance(value, Channel) else Channel(value)
        if channel not in channels:
            channels.append(channel)
    return channels


class NotificationType(_CaseInsensitiveEnum):
    CHECK_IN_REMINDER = "check_in_reminder"
    TASK_NOTIFICATION = "task_notification"
    EXPIRY_ALERT = "expiry_alert"
    BUDGET_WARNING = "budget_warning"
    HEALTH_ALERT = "health_alert"
    GOAL_ACHIEVEMENT = "goal_achievement"
    FAMILY_ACTIVITY = "family_activity"
    SYSTEM_ANNOUNCEMENT = "system_announcement"
    MARKETING = "marketing"
    OTHER = "other"


class NotificationPriority(_CaseInsensitiveEnum):
    """Notification priority levels.

    URGENT bypasses quiet hours, type toggles and daily caps, and is sent on
    every channel the recipient has contact data for.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationStatus(_CaseInsensitiveEnum):
    """Aggregate delivery status of a notification."""

    PENDING = "pending"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


# SENDING -> SENDING is only used when a stale dispatch is re-driven
ALLOWED_TRANSITIONS: Dict[NotificationStatus, frozenset] = {
    NotificationStatus.PENDING: frozenset(
        {NotificationStatus.SENDING, NotificationStatus.CANCELLED}
    ),
    NotificationStatus.SENDING: frozenset(
        {NotificationStatus.SENT, NotificationStatus.FAILED, NotificationStatus.SENDING}
    ),
    NotificationStatus.FAILED: frozenset(
        {NotificationStatus.SENDING, NotificationStatus.CANCELLED}
    ),
    NotificationStatus.SENT: frozenset(),
    NotificationStatus.CANCELLED: frozenset(),
}


class DeliveryStatus(_CaseInsensitiveEnum):
    SENT = "sent"
    FAILED = "failed"


class ScheduleStatus(_CaseInsensitiveEnum):
    SCHEDULED = "scheduled"
    FIRED = "fired"
    CANCELLED = "cancelled"


class ScheduleReason(_CaseInsensitiveEnum):
    QUIET_HOURS = "quiet_hours"
    REQUESTED = "requested"


def _validate_phone_number(v: Optional[str]) -> Optional[str]:
    """Validate E.164 phone format if provided."""
    if v is None:
        return v
    if not v.startswith("+") or not v[1:].isdigit():
        raise ValueError(f"Phone number must be in E.164 format: {v}")
    if len(v) < 8 or len(v) > 16:
        raise ValueError(f"Phone number length invalid: {v}")
    return v


DEFAULT_DAILY_MAX_TOTAL = 50
DEFAULT_DAILY_MAX_PER_CHANNEL = {Channel.SMS: 5, Channel.EMAIL: 20}


class Recipient(BaseModel):
    """Contact data handed to channel adapters.

    Built from the recipient's preference record at dispatch time; each
    adapter reads only the field it needs.
    """

    recipient_id: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    chat_user_id: Optional[str] = None
    push_tokens: List[str] = Field(default_factory=list)
    locale: Optional[str] = None


class NotificationPreference(BaseModel):
    """One recipient's notification preferences and contact data.

    Attributes:
        enabled: Global on/off switch
        quiet_hours_start / quiet_hours_end: Hour-of-day bounds (0-23) of the
            do-not-disturb window, evaluated in ``timezone``
        type_enabled: Per-type toggle; missing types are enabled
        type_channels: Per-type channel list used when the caller names none
        daily_max_total: Cap on non-IN_APP sends per local day (None = no cap)
        daily_max_per_channel: Per-channel caps per local day
    """

    recipient_id: str
    enabled: bool = True
    quiet_hours_start: Optional[int] = Field(default=None, ge=0, le=23)
    quiet_hours_end: Optional[int] = Field(default=None, ge=0, le=23)
    timezone: str = "UTC"
    locale: Optional[str] = None
    type_enabled: Dict[NotificationType, bool] = Field(default_factory=dict)
    type_channels: Dict[NotificationType, List[Channel]] = Field(default_factory=dict)
    email: Optional[str] = None
    phone_number: Optional[str] = None
    chat_user_id: Optional[str] = None
    push_tokens: List[str] = Field(default_factory=list)
    daily_max_total: Optional[int] = Field(default=DEFAULT_DAILY_MAX_TOTAL, ge=0)
    daily_max_per_channel: Dict[Channel, int] = Field(
        default_factory=lambda: dict(DEFAULT_DAILY_MAX_PER_CHANNEL)
    )
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v: Optional[str]) -> Optional[str]:
        return _validate_phone_number(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @field_validator("type_channels", mode="before")
    @classmethod
    def normalize_type_channels(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {key: parse_channels(channels) for key, channels in v.items()}
        return v

    @property
    def zone(self) -> BaseTzInfo:
        return pytz.timezone(self.timezone)

    def is_type_enabled(self, notification_type: NotificationType) -> bool:
        return self.type_enabled.get(notification_type, True)

    def has_contact(self, channel: Channel) -> bool:
        """Whether the recipient has the contact data ``channel`` needs."""
        if channel is Channel.IN_APP:
            return True
        if channel is Channel.EMAIL:
            return bool(self.email)
        if channel is Channel.SMS:
            return bool(self.phone_number)
        if channel is Channel.CHAT:
            return bool(self.chat_user_id)
        if channel is Channel.PUSH:
            return bool(self.push_tokens)
        return False

    def to_recipient(self) -> Recipient:
        return Recipient(
            recipient_id=self.recipient_id,
            email=self.email,
            phone_number=self.phone_number,
            chat_user_id=self.chat_user_id,
            push_tokens=list(self.push_tokens),
            locale=self.locale,
        )

    @classmethod
    def default_for(cls, recipient_id: str) -> "NotificationPreference":
        """Preference used when a recipient has no stored record."""
        return cls(recipient_id=recipient_id)


class Notification(BaseModel):
    """One logical send request and its aggregate outcome.

    ``metadata`` is validated against a typed payload for the types that
    carry one (see ``infrastructure.notifications.metadata``); unknown keys
    are preserved.
    """

    id: str = Field(default_factory=new_id)
    recipient_id: str
    type: NotificationType
    title: str
    content: str
    priority: NotificationPriority = NotificationPriority.MEDIUM
    status: NotificationStatus = NotificationStatus.PENDING
    resolved_channels: List[Channel] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    action_url: Optional[str] = None
    action_text: Optional[str] = None
    dedup_key: Optional[str] = None
    batch_id: Optional[str] = None
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=3, ge=0)
    next_retry_at: Optional[datetime] = None
    locale: Optional[str] = None
    template_data: Dict[str, Any] = Field(default_factory=dict)
    explicit_content: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    sent_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @field_validator("resolved_channels", mode="before")
    @classmethod
    def normalize_channels(cls, v: Any) -> Any:
        return parse_channels(v) if isinstance(v, list) else v

    @model_validator(mode="after")
    def validate_invariants(self) -> "Notification":
        if self.retry_count > self.max_retries:
            raise ValueError("retry_count cannot exceed max_retries")
        self.metadata = validate_metadata(self.type.value, self.metadata)
        return self

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def can_transition(self, target: NotificationStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]

    def transition_to(self, target: NotificationStatus, at: datetime) -> None:
        """Move to ``target`` or raise InvalidStatusTransitionError."""
        if not self.can_transition(target):
            raise InvalidStatusTransitionError(
                self.id, self.status.value, target.value
            )
        self.status = target
        self.updated_at = at


class DeliveryLog(BaseModel):
    """Append-only record of one channel send attempt."""

    id: str = Field(default_factory=new_id)
    notification_id: str
    recipient_id: str
    channel: Channel
    status: DeliveryStatus
    sent_at: datetime
    external_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    retryable: bool = False
    cost: float = 0.0
    processing_time_ms: int = 0
    attempt: int = 0

    @property
    def is_success(self) -> bool:
        return self.status == DeliveryStatus.SENT


class ScheduledNotification(BaseModel):
    """A deferred dispatch awaiting quiet-hours expiry or a requested time.

    ``payload`` is the fully resolved notification as it was persisted
    PENDING; ``notification_id`` points at that row.
    """

    id: str = Field(default_factory=new_id)
    recipient_id: str
    notification_id: str
    payload: Notification
    scheduled_time: datetime
    status: ScheduleStatus = ScheduleStatus.SCHEDULED
    reason: ScheduleReason = ScheduleReason.REQUESTED
    retry_count: int = 0
    max_retries: int = 3
    created_at: datetime = Field(default_factory=utc_now)
    fired_at: Optional[datetime] = None
    last_error: Optional[str] = None


class TemplateOverride(BaseModel):
    """Title and/or content replacing the template default."""

    title: Optional[str] = None
    content: Optional[str] = None


class TemplateTranslation(TemplateOverride):
    """Locale override with optional per-channel overrides of its own."""

    channels: Dict[Channel, TemplateOverride] = Field(default_factory=dict)


class TemplateVariable(BaseModel):
    name: str
    required: bool = False
    description: Optional[str] = None


class NotificationTemplate(BaseModel):
    """Stored title/content template for a notification type."""

    type: NotificationType
    title_template: str
    content_template: str
    channel_templates: Dict[Channel, TemplateOverride] = Field(default_factory=dict)
    translations: Dict[str, TemplateTranslation] = Field(default_factory=dict)
    variables: List[TemplateVariable] = Field(default_factory=list)
    default_channels: List[Channel] = Field(default_factory=list)
    default_priority: NotificationPriority = NotificationPriority.MEDIUM
    is_active: bool = True
    usage_count: int = 0
    last_used_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("default_channels", mode="before")
    @classmethod
    def normalize_channels(cls, v: Any) -> Any:
        return parse_channels(v) if isinstance(v, list) else v


class RenderedMessage(BaseModel):
    """Channel-ready content passed to adapters."""

    notification_id: str
    title: str
    content: str
    priority: NotificationPriority = NotificationPriority.MEDIUM
    action_url: Optional[str] = None
    action_text: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class NotificationRequest(BaseModel):
    """Creation request.

    Either both ``title`` and ``content`` are given (explicit content), or
    neither is and the stored template for ``type`` is rendered with
    ``template_data``.
    """

    recipient_id: str = Field(..., min_length=1)
    type: NotificationType
    title: Optional[str] = None
    content: Optional[str] = None
    priority: Optional[NotificationPriority] = None
    channels: Optional[List[Channel]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    action_url: Optional[str] = None
    action_text: Optional[str] = None
    template_data: Dict[str, Any] = Field(default_factory=dict)
    dedup_key: Optional[str] = None
    batch_id: Optional[str] = None
    locale: Optional[str] = None
    max_retries: Optional[int] = Field(default=None, ge=0)

    @field_validator("channels", mode="before")
    @classmethod
    def normalize_channels(cls, v: Any) -> Any:
        return parse_channels(v) if isinstance(v, list) else v

    @model_validator(mode="after")
    def validate_content_pair(self) -> "NotificationRequest":
        if (self.title is None) != (self.content is None):
            raise ValueError("title and content must be supplied together")
        self.metadata = validate_metadata(self.type.value, self.metadata)
        return self

    @property
    def has_explicit_content(self) -> bool:
        return self.title is not None and self.content is not None


class CreateNotificationResult(BaseModel):
    id: str
    status: NotificationStatus
    deduplicated: bool = False
    scheduled_time: Optional[datetime] = None


class BulkItemResult(BaseModel):
    index: int
    success: bool
    id: Optional[str] = None
    status: Optional[NotificationStatus] = None
    deduplicated: bool = False
    error: Optional[str] = None


class BulkCreateResult(BaseModel):
    total: int
    successful: int
    failed: int
    results: List[BulkItemResult]


class NotificationQuery(BaseModel):
    type: Optional[NotificationType] = None
    status: Optional[NotificationStatus] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    search: Optional[str] = None
    include_read: bool = False
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class NotificationPage(BaseModel):
    items: List[Notification]
    total: int
    has_more: bool


class RecipientStats(BaseModel):
    days: int
    total: int
    unread: int
    by_status: Dict[str, int]
    by_type: Dict[str, int]


class TemplateStats(BaseModel):
    type: NotificationType
    usage_count: int
    last_used_at: Optional[datetime] = None
    is_active: bool


class DispatchOutcome(BaseModel):
    """Summary of one dispatch cycle."""

    notification_id: str
    status: NotificationStatus
    attempted: List[Channel] = Field(default_factory=list)
    succeeded: List[Channel] = Field(default_factory=list)
    failed: List[Channel] = Field(default_factory=list)
    skipped: bool = False
    next_retry_at: Optional[datetime] = None
