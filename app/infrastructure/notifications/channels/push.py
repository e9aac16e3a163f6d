"""Mobile push channel over an HTTP push gateway."""

from typing import Optional

import requests

from infrastructure.configuration.integrations.push import PushSettings
from infrastructure.logging import get_module_logger
from infrastructure.notifications.channels.base import NotificationChannel
from infrastructure.notifications.errors import ChannelDeliveryError
from infrastructure.notifications.models import Channel, Recipient, RenderedMessage
from infrastructure.operations import (
    OperationResult,
    classify_http_error,
    classify_status_code,
)

logger = get_module_logger()

PROVIDER = "Push gateway"


def _gateway_id(response: requests.Response) -> Optional[str]:
    """The gateway's message id from an accepted response, if it sent one.

    Never raises: a 2xx body that is not a JSON object yields None.
    """
    if not response.content:
        return None
    try:
        body = response.json()
    except ValueError:
        logger.warning("push_response_unparsed", status_code=response.status_code)
        return None
    if not isinstance(body, dict) or not body.get("id"):
        return None
    return str(body["id"])


class PushChannel(NotificationChannel):
    """Sends one push request covering all of the recipient's device tokens.

    The gateway answers 2xx with ``{"id": ...}``; any other status is
    classified like every other HTTP provider.
    """

    def __init__(self, settings: PushSettings, session: Optional[requests.Session] = None):
        self._settings = settings
        self._session = session or requests.Session()
        logger.info("initialized_push_channel", gateway=settings.PUSH_GATEWAY_URL)

    @property
    def channel(self) -> Channel:
        return Channel.PUSH

    def send(self, recipient: Recipient, message: RenderedMessage) -> str:
        if not recipient.push_tokens:
            raise ChannelDeliveryError(
                "No push tokens registered", error_code="MISSING_PUSH_TOKEN", retryable=False
            )
        if not self._settings.PUSH_GATEWAY_URL:
            raise ChannelDeliveryError(
                "PUSH_GATEWAY_URL is not configured",
                error_code="NOT_CONFIGURED",
                retryable=False,
            )

        payload = {
            "tokens": recipient.push_tokens,
            "title": message.title,
            "body": message.content,
            "data": {
                "notification_id": message.notification_id,
                "action_url": message.action_url,
            },
            "priority": "high" if message.priority.value in ("high", "urgent") else "normal",
        }
        headers = {"Authorization": f"Bearer {self._settings.PUSH_API_KEY}"}

        try:
            response = self._session.post(
                self._settings.PUSH_GATEWAY_URL,
                json=payload,
                headers=headers,
                timeout=self._settings.PUSH_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            self.raise_for_result(classify_http_error(e, provider=PROVIDER))
            raise

        if not 200 <= response.status_code < 300:
            self.raise_for_result(
                classify_status_code(
                    response.status_code,
                    PROVIDER,
                    detail=response.text[:200] if response.text else "",
                    retry_after=response.headers.get("Retry-After"),
                )
            )

        logger.info(
            "push_sent",
            notification_id=message.notification_id,
            token_count=len(recipient.push_tokens),
        )
        return _gateway_id(response) or message.notification_id

    def health_check(self) -> OperationResult:
        if not self._settings.PUSH_GATEWAY_URL:
            return OperationResult.permanent_error(
                message="PUSH_GATEWAY_URL is not configured", error_code="NOT_CONFIGURED"
            )
        return OperationResult.success(message="Push gateway configured")
