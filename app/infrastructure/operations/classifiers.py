"""Error classifiers for delivery provider exceptions.

Converts provider-specific exceptions (``requests`` HTTP calls to GC Notify
and the push gateway, ``slack_sdk`` Web API calls) into OperationResult
objects so every channel decides retryability the same way.

Status Code Mapping (both providers):
- 429: Rate limiting -> TRANSIENT_ERROR with retry_after
- 401/403: Credentials rejected -> UNAUTHORIZED (not retryable)
- 404: Not found -> NOT_FOUND (not retryable)
- 5xx: Server error -> TRANSIENT_ERROR
- Other 4xx: Rejected request -> PERMANENT_ERROR
- No response (connection reset, timeout) -> TRANSIENT_ERROR

Usage:
    from infrastructure.operations.classifiers import classify_http_error

    try:
        response = requests.post(url, json=payload, timeout=60)
        response.raise_for_status()
    except requests.RequestException as exc:
        result = classify_http_error(exc)
"""

from typing import Optional

import requests
from slack_sdk.errors import SlackApiError

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

DEFAULT_RETRY_AFTER = 60

# Slack reports most failures with HTTP 200 and an error string
SLACK_TRANSIENT_ERRORS = frozenset(
    {"ratelimited", "internal_error", "fatal_error", "service_unavailable", "request_timeout"}
)
SLACK_AUTH_ERRORS = frozenset(
    {"invalid_auth", "not_authed", "account_inactive", "token_revoked", "missing_scope"}
)
SLACK_NOT_FOUND_ERRORS = frozenset({"user_not_found", "channel_not_found", "users_not_found"})


def _parse_retry_after(value: Optional[str]) -> int:
    if value:
        try:
            return int(value)
        except (ValueError, TypeError):
            pass
    return DEFAULT_RETRY_AFTER


def classify_status_code(
    status_code: Optional[int],
    provider: str,
    detail: str = "",
    retry_after: Optional[str] = None,
) -> OperationResult:
    """Map an HTTP status code from ``provider`` to an OperationResult."""
    suffix = f": {detail}" if detail else ""

    if status_code is None:
        return OperationResult.transient_error(
            f"{provider} connection error{suffix}",
            error_code="CONNECTION_ERROR",
        )

    if status_code == 429:
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            f"{provider} rate limited",
            error_code="RATE_LIMITED",
            retry_after=_parse_retry_after(retry_after),
        )

    if status_code in (401, 403):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            f"{provider} rejected credentials ({status_code})",
            error_code="UNAUTHORIZED",
        )

    if status_code == 404:
        return OperationResult.error(
            OperationStatus.NOT_FOUND,
            f"{provider} resource not found{suffix}",
            error_code="NOT_FOUND",
        )

    if 500 <= status_code < 600:
        return OperationResult.transient_error(
            f"{provider} server error ({status_code})",
            error_code="SERVER_ERROR",
        )

    if 400 <= status_code < 500:
        return OperationResult.permanent_error(
            f"{provider} client error ({status_code}){suffix}",
            error_code="HTTP_ERROR",
        )

    return OperationResult.permanent_error(
        f"{provider} unexpected status ({status_code}){suffix}",
        error_code="UNKNOWN_ERROR",
    )


def classify_http_error(exc: Exception, provider: str = "HTTP") -> OperationResult:
    """Classify a ``requests`` exception into OperationResult.

    Timeouts and connection failures carry no response and are transient.
    ``HTTPError`` is classified on its response's status code.

    Example:
        try:
            response = requests.post(url, json=payload, timeout=60)
            response.raise_for_status()
        except requests.RequestException as exc:
            return classify_http_error(exc, provider="GC Notify")
    """
    response = getattr(exc, "response", None)
    if not isinstance(exc, requests.RequestException) or response is None:
        return OperationResult.transient_error(
            f"{provider} connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    return classify_status_code(
        response.status_code,
        provider,
        detail=response.text[:200] if response.text else "",
        retry_after=response.headers.get("Retry-After"),
    )


def classify_slack_error(exc: Exception) -> OperationResult:
    """Classify a ``slack_sdk`` exception into OperationResult.

    Example:
        try:
            client.chat_postMessage(channel=channel_id, text=text)
        except SlackApiError as exc:
            return classify_slack_error(exc)
    """
    if not isinstance(exc, SlackApiError):
        return OperationResult.transient_error(
            f"Slack connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    response = exc.response
    error = ""
    status_code: Optional[int] = None
    retry_after: Optional[str] = None
    if response is not None:
        error = response.get("error", "") or ""
        status_code = getattr(response, "status_code", None)
        headers = getattr(response, "headers", None) or {}
        retry_after = headers.get("Retry-After") or headers.get("retry-after")

    if error == "ratelimited" or status_code == 429:
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            "Slack API rate limited",
            error_code="RATE_LIMITED",
            retry_after=_parse_retry_after(retry_after),
        )

    if error in SLACK_TRANSIENT_ERRORS:
        return OperationResult.transient_error(
            f"Slack API error: {error}", error_code="SERVER_ERROR"
        )

    if error in SLACK_AUTH_ERRORS:
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            f"Slack API authentication failed: {error}",
            error_code="UNAUTHORIZED",
        )

    if error in SLACK_NOT_FOUND_ERRORS:
        return OperationResult.error(
            OperationStatus.NOT_FOUND,
            f"Slack recipient not found: {error}",
            error_code="NOT_FOUND",
        )

    if status_code is not None and status_code >= 500:
        return OperationResult.transient_error(
            f"Slack API server error ({status_code})", error_code="SERVER_ERROR"
        )

    return OperationResult.permanent_error(
        f"Slack API error: {error or str(exc)}",
        error_code="SLACK_API_ERROR",
    )
