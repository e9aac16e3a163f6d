"""Unit tests for infrastructure.logging.formatters module.

Tests cover:
- add_app_info processor
- mask_sensitive_data processor, including recipient contact keys
- truncate_large_values processor
- add_environment_info processor
"""

import pytest

from infrastructure.logging.formatters import (
    SENSITIVE_PATTERNS,
    add_app_info,
    add_environment_info,
    mask_sensitive_data,
    truncate_large_values,
)
from infrastructure.logging.setup import CONTACT_PATTERNS


@pytest.mark.unit
class TestAddAppInfo:
    """Test suite for add_app_info processor factory."""

    def test_adds_name_and_version(self):
        processor = add_app_info("notification-service", "1.2.3")

        result = processor(None, "info", {"event": "dispatch_started"})

        assert result["app_name"] == "notification-service"
        assert result["app_version"] == "1.2.3"
        assert result["event"] == "dispatch_started"

    def test_unknown_version_default(self):
        result = add_app_info("notification-service")(None, "info", {"event": "x"})

        assert result["app_version"] == "unknown"


@pytest.mark.unit
class TestMaskSensitiveData:
    """Test suite for mask_sensitive_data processor factory."""

    def test_masks_credentials(self):
        processor = mask_sensitive_data()

        result = processor(
            None, "info", {"event": "x", "api_key": "k", "Authorization": "Bearer t"}
        )

        assert result["api_key"] == "***REDACTED***"
        assert result["Authorization"] == "***REDACTED***"
        assert result["event"] == "x"

    def test_contact_details_masked_with_contact_patterns(self):
        """Recipient email and phone never reach the log output."""
        processor = mask_sensitive_data(additional_patterns=CONTACT_PATTERNS)

        result = processor(
            None,
            "info",
            {"event": "x", "email": "a@example.com", "contact": {"phone_number": "+1555"}},
        )

        assert result["email"] == "***REDACTED***"
        assert result["contact"] == {"phone_number": "***REDACTED***"}

    def test_contact_details_kept_without_contact_patterns(self):
        result = mask_sensitive_data()(None, "info", {"email": "a@example.com"})

        assert result["email"] == "a@example.com"

    def test_none_values_left_alone(self):
        result = mask_sensitive_data()(None, "info", {"token": None})

        assert result["token"] is None

    def test_custom_mask_value(self):
        result = mask_sensitive_data(mask_value="[hidden]")(None, "info", {"secret": "s"})

        assert result["secret"] == "[hidden]"

    def test_patterns_include_jwt(self):
        assert "jwt" in SENSITIVE_PATTERNS


@pytest.mark.unit
class TestTruncateLargeValues:
    """Test suite for truncate_large_values processor factory."""

    def test_long_strings_truncated(self):
        processor = truncate_large_values(max_length=10)

        result = processor(None, "info", {"content": "x" * 25})

        assert result["content"] == "x" * 10 + "...[truncated, 25 chars total]"

    def test_short_strings_and_non_strings_kept(self):
        processor = truncate_large_values(max_length=10)

        result = processor(None, "info", {"title": "short", "count": 10**20})

        assert result == {"title": "short", "count": 10**20}


@pytest.mark.unit
def test_add_environment_info():
    result = add_environment_info("staging")(None, "info", {"event": "x"})

    assert result["environment"] == "staging"
