"""Tests for domain models and latency buckets."""

import pytest
from pydantic import ValidationError

from sitestress.domain.models import (
    RESPONSE_TIME_BUCKETS,
    Outcome,
    ProbeVariant,
    WorkItem,
    bucket_for,
    empty_buckets,
)


class TestOutcome:
    def test_from_response_success(self):
        outcome = Outcome.from_response("https://example.com", 200, 123.9)
        assert outcome.success is True
        assert outcome.status_code == 200
        assert outcome.latency_ms == 123

    def test_redirect_status_is_success(self):
        assert Outcome.from_response("https://example.com", 304, 10).success is True

    def test_from_response_failure(self):
        outcome = Outcome.from_response("https://example.com", 404, 50)
        assert outcome.success is False
        assert outcome.error_message is None

    def test_from_error(self):
        outcome = Outcome.from_error("https://example.com", "net::ERR_FAILED")
        assert outcome.success is False
        assert outcome.status_code is None
        assert outcome.latency_ms == 0

    def test_success_with_error_status_rejected(self):
        with pytest.raises(ValidationError):
            Outcome(url="https://example.com", success=True, status_code=500)

    def test_failure_with_ok_status_needs_error(self):
        with pytest.raises(ValidationError):
            Outcome(url="https://example.com", success=False, status_code=200)

    def test_failure_with_ok_status_and_error_allowed(self):
        outcome = Outcome(
            url="https://example.com", success=False, status_code=200, error_message="blank page"
        )
        assert outcome.success is False

    def test_success_without_status_allowed(self):
        outcome = Outcome(url="https://example.com", success=True, latency_ms=200)
        assert outcome.status_code is None

    def test_negative_latency_rejected(self):
        with pytest.raises(ValidationError):
            Outcome(url="https://example.com", success=False, latency_ms=-1)


class TestWorkItem:
    def test_defaults(self):
        item = WorkItem(user_id=1, url="https://example.com")
        assert item.probe_variant == ProbeVariant.CHROMIUM

    def test_user_id_must_be_positive(self):
        with pytest.raises(ValidationError):
            WorkItem(user_id=0, url="https://example.com")


class TestBuckets:
    @pytest.mark.parametrize(
        "latency, label",
        [
            (0, "< 500ms"),
            (499, "< 500ms"),
            (500, "500ms-1s"),
            (999, "500ms-1s"),
            (1_000, "1s-3s"),
            (3_000, "3s-5s"),
            (5_000, "5s-10s"),
            (9_999, "5s-10s"),
            (10_000, "> 10s"),
            (120_000, "> 10s"),
        ],
    )
    def test_bucket_for(self, latency, label):
        assert bucket_for(latency) == label

    def test_empty_buckets_in_order(self):
        assert list(empty_buckets()) == [label for label, _ in RESPONSE_TIME_BUCKETS]
        assert sum(empty_buckets().values()) == 0
