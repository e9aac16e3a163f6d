"""GC Notify client.

Used by the email and SMS channels. Messages are sent through pass-through
templates configured in GC Notify whose ``title`` and ``body`` placeholders
are filled from the rendered notification.
"""

import calendar
import json
import time
from typing import Any, Dict, Optional

import jwt
import requests

from infrastructure.configuration.integrations.notify import NotifySettings
from infrastructure.logging import get_module_logger
from infrastructure.operations import (
    OperationResult,
    classify_http_error,
    classify_status_code,
)

logger = get_module_logger()

PROVIDER = "GC Notify"
REQUEST_TIMEOUT_SECONDS = 60


# generate the epoch seconds for the jwt token
def epoch_seconds():
    return calendar.timegm(time.gmtime())


def create_jwt_token(secret, client_id):
    """
    Generate a JWT Token for the Notify API

    Tokens have a header consisting of:
    {
        "typ": "JWT",
        "alg": "HS256"
    }

    Claims are:
    iss: identifier for the client
    iat: epoch seconds for the token (UTC)

    Returns a JWT token for this request
    """
    if not secret:
        logger.error("jwt_token_creation_failed", error="Missing secret key")
        raise ValueError("Missing secret key")
    if not client_id:
        logger.error("jwt_token_creation_failed", error="Missing client id")
        raise ValueError("Missing client id")

    headers = {"typ": "JWT", "alg": "HS256"}
    claims = {"iss": client_id, "iat": epoch_seconds()}
    return jwt.encode(payload=claims, key=secret, headers=headers)


class NotifyClient:
    """Thin client over the GC Notify v2 notifications API."""

    def __init__(self, settings: NotifySettings, session: Optional[requests.Session] = None):
        self._settings = settings
        self._session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    def create_authorization_header(self):
        """Return the ``(name, value)`` pair of the bearer authorization header."""
        client_id = self._settings.NOTIFY_USER_NAME
        secret = self._settings.NOTIFY_CLIENT_SECRET

        if not client_id:
            error = "NOTIFY_USER_NAME is missing"
            logger.error("authorization_header_creation_failed", error=error)
            raise ValueError(error)
        if not secret:
            error = "NOTIFY_CLIENT_SECRET is missing"
            logger.error("authorization_header_creation_failed", error=error)
            raise ValueError(error)

        token = create_jwt_token(secret=secret, client_id=client_id)
        return "Authorization", "Bearer {}".format(token)

    def post_event(self, path: str, payload: Dict[str, Any]) -> requests.Response:
        """POST ``payload`` as JSON to ``NOTIFY_API_URL + path``."""
        header_key, header_value = self.create_authorization_header()
        headers = {header_key: header_value, "Content-Type": "application/json"}
        url = self._settings.NOTIFY_API_URL.rstrip("/") + path
        return self._session.post(
            url, data=json.dumps(payload), headers=headers, timeout=REQUEST_TIMEOUT_SECONDS
        )

    def send_email(
        self,
        email_address: str,
        personalisation: Dict[str, Any],
        reference: Optional[str] = None,
    ) -> OperationResult:
        payload = {
            "email_address": email_address,
            "template_id": self._settings.NOTIFY_EMAIL_TEMPLATE_ID,
            "personalisation": personalisation,
        }
        if reference:
            payload["reference"] = reference
        return self._send("/v2/notifications/email", payload)

    def send_sms(
        self,
        phone_number: str,
        personalisation: Dict[str, Any],
        reference: Optional[str] = None,
    ) -> OperationResult:
        payload = {
            "phone_number": phone_number,
            "template_id": self._settings.NOTIFY_SMS_TEMPLATE_ID,
            "personalisation": personalisation,
        }
        if reference:
            payload["reference"] = reference
        return self._send("/v2/notifications/sms", payload)

    def _send(self, path: str, payload: Dict[str, Any]) -> OperationResult:
        try:
            response = self.post_event(path, payload)
        except requests.RequestException as e:
            logger.warning("notify_request_failed", path=path, error=str(e))
            return classify_http_error(e, provider=PROVIDER)

        # A successful response has a status code of 201
        if response.status_code == 201:
            try:
                body = response.json()
            except ValueError:
                logger.warning("notify_response_unparsed", path=path)
                body = None
            notification_id = body.get("id") if isinstance(body, dict) else None
            return OperationResult.success(
                data={"id": notification_id}, message="accepted by GC Notify"
            )

        logger.warning(
            "notify_request_rejected",
            path=path,
            response_code=response.status_code,
        )
        return classify_status_code(
            response.status_code,
            PROVIDER,
            detail=response.text[:200] if response.text else "",
            retry_after=response.headers.get("Retry-After"),
        )
