"""Tests for ordered error classification."""

import pytest

from sitestress.domain.classification import (
    MESSAGE_RULES,
    UNKNOWN_ERROR,
    ClassificationRule,
    ProbeErrorKind,
    classify_error,
    error_kind,
)


class TestClassifyError:
    @pytest.mark.parametrize(
        "status_code, message, expected",
        [
            (503, None, "HTTP 503"),
            (404, "ignored when a status is present", "HTTP 404"),
            (None, "Navigation timeout of 30000ms exceeded", "Timeout"),
            (None, "net::ERR_NAME_NOT_RESOLVED at https://nope.invalid", "Network Error"),
            (None, "net::ERR_SSL_PROTOCOL_ERROR", "Network Error"),
            (None, "SSL handshake failed: bad certificate", "SSL Error"),
            (None, "Navigation failed because page crashed!", "Navigation Error"),
            (None, "Target closed: browser has disconnected", "Target closed"),
            (None, None, UNKNOWN_ERROR),
            (None, "", UNKNOWN_ERROR),
            (None, ": nothing before the colon", UNKNOWN_ERROR),
        ],
    )
    def test_labels(self, status_code, message, expected):
        assert classify_error(status_code, message) == expected

    def test_zero_status_falls_back_to_message(self):
        assert classify_error(0, "net::ERR_CONNECTION_RESET") == "Network Error"

    def test_first_matching_rule_wins(self):
        message = "Navigation timeout of 30000ms exceeded"
        matching = [rule.label for rule in MESSAGE_RULES if rule.matches(message)]
        assert matching == ["Timeout", "Navigation Error"]
        assert classify_error(None, message) == "Timeout"

    def test_custom_rules(self):
        rules = [
            ClassificationRule("Crash", ProbeErrorKind.UNKNOWN, lambda m: "crash" in m),
        ]
        assert classify_error(None, "page crash detected", rules=rules) == "Crash"
        assert classify_error(None, "Navigation timeout", rules=rules) == "Navigation timeout"


class TestErrorKind:
    def test_known_labels(self):
        assert error_kind("Timeout") == ProbeErrorKind.TIMEOUT
        assert error_kind("Network Error") == ProbeErrorKind.NETWORK
        assert error_kind("SSL Error") == ProbeErrorKind.TLS
        assert error_kind("Navigation Error") == ProbeErrorKind.NAVIGATION

    def test_http_status(self):
        assert error_kind("HTTP 500") == ProbeErrorKind.HTTP_STATUS

    def test_unknown(self):
        assert error_kind("Target closed") == ProbeErrorKind.UNKNOWN
        assert error_kind(UNKNOWN_ERROR) == ProbeErrorKind.UNKNOWN
