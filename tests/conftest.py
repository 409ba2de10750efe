"""Shared test fixtures for sitestress tests."""

import random

import pytest

from sitestress.probes.base import ProbeOptions, RetryPolicy
from tests.fakes import FakeProbe, RecordingSink


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def fast_options() -> ProbeOptions:
    """No think time and no retry backoff."""
    return ProbeOptions(
        timeout_ms=500,
        retry=RetryPolicy(max_retries=0, backoff_seconds=0),
        think_time_min_ms=0,
        think_time_max_ms=0,
    )


@pytest.fixture
def urls() -> list[str]:
    return [
        "https://example.com",
        "https://example.com/about",
        "https://example.com/contact",
    ]
