"""Unit tests for provider error classifiers.

Tests cover:
- HTTP status code mapping shared by GC Notify and the push gateway
- requests exception classification
- Slack Web API error classification
- Retry-After extraction
"""

from unittest.mock import MagicMock

import pytest
import requests
from slack_sdk.errors import SlackApiError

from infrastructure.operations import (
    OperationResult,
    OperationStatus,
    classify_http_error,
    classify_slack_error,
    classify_status_code,
)

pytestmark = pytest.mark.unit


def slack_error(error, status_code=200, headers=None):
    response = MagicMock()
    response.get.return_value = error
    response.status_code = status_code
    response.headers = headers or {}
    return SlackApiError(message=error, response=response)


class TestClassifyStatusCode:
    """Tests for classify_status_code()."""

    @pytest.mark.parametrize(
        "status_code,expected_status,expected_code",
        [
            (None, OperationStatus.TRANSIENT_ERROR, "CONNECTION_ERROR"),
            (401, OperationStatus.UNAUTHORIZED, "UNAUTHORIZED"),
            (404, OperationStatus.NOT_FOUND, "NOT_FOUND"),
            (422, OperationStatus.PERMANENT_ERROR, "HTTP_ERROR"),
            (502, OperationStatus.TRANSIENT_ERROR, "SERVER_ERROR"),
            (302, OperationStatus.PERMANENT_ERROR, "UNKNOWN_ERROR"),
        ],
    )
    def test_mapping(self, status_code, expected_status, expected_code):
        result = classify_status_code(status_code, "GC Notify")

        assert result.status == expected_status
        assert result.error_code == expected_code

    def test_rate_limit_with_retry_after(self):
        result = classify_status_code(429, "GC Notify", retry_after="120")

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "RATE_LIMITED"
        assert result.retry_after == 120

    def test_malformed_retry_after_uses_default(self):
        assert classify_status_code(429, "GC Notify", retry_after="soon").retry_after == 60

    def test_detail_included_in_message(self):
        result = classify_status_code(400, "GC Notify", detail="bad phone number")

        assert "bad phone number" in result.message


class TestClassifyHttpError:
    """Tests for classify_http_error()."""

    def test_timeout_is_transient(self):
        result = classify_http_error(requests.Timeout("read timed out"), provider="Push gateway")

        assert result.is_retryable
        assert result.error_code == "CONNECTION_ERROR"
        assert "Push gateway" in result.message

    def test_http_error_uses_response_status(self):
        response = MagicMock(status_code=403, text="forbidden", headers={})
        exc = requests.HTTPError("forbidden", response=response)

        result = classify_http_error(exc)

        assert result.status == OperationStatus.UNAUTHORIZED

    def test_non_requests_exception_is_transient(self):
        assert classify_http_error(OSError("reset")).is_retryable


class TestClassifySlackError:
    """Tests for classify_slack_error()."""

    @pytest.mark.parametrize(
        "error,status_code,expected_status",
        [
            ("ratelimited", 429, OperationStatus.TRANSIENT_ERROR),
            ("internal_error", 200, OperationStatus.TRANSIENT_ERROR),
            ("invalid_auth", 200, OperationStatus.UNAUTHORIZED),
            ("channel_not_found", 200, OperationStatus.NOT_FOUND),
            ("", 503, OperationStatus.TRANSIENT_ERROR),
            ("cant_dm_bot", 200, OperationStatus.PERMANENT_ERROR),
        ],
    )
    def test_mapping(self, error, status_code, expected_status):
        assert classify_slack_error(slack_error(error, status_code)).status == expected_status

    def test_rate_limit_reads_retry_after(self):
        result = classify_slack_error(slack_error("ratelimited", 429, {"Retry-After": "7"}))

        assert result.retry_after == 7

    def test_non_slack_exception_is_transient(self):
        assert classify_slack_error(ConnectionError("reset")).error_code == "CONNECTION_ERROR"


class TestOperationResult:
    """Tests for OperationResult helpers."""

    def test_success(self):
        result = OperationResult.success(data={"id": "1"})

        assert result.is_success
        assert not result.is_retryable

    def test_only_transient_errors_retry(self):
        assert OperationResult.transient_error("slow").is_retryable
        assert not OperationResult.permanent_error("bad").is_retryable
        assert not OperationResult.error(OperationStatus.UNAUTHORIZED, "no").is_retryable
