"""Pydantic models for work items, probe outcomes and aggregated step metrics."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Ordered latency histogram labels with their exclusive upper bound in ms.
RESPONSE_TIME_BUCKETS: tuple[tuple[str, float], ...] = (
    ("< 500ms", 500),
    ("500ms-1s", 1_000),
    ("1s-3s", 3_000),
    ("3s-5s", 5_000),
    ("5s-10s", 10_000),
    ("> 10s", float("inf")),
)

MAX_EXAMPLES_PER_ERROR_TYPE = 3
MAX_ERRORS_PER_PATH = 5


def empty_buckets() -> dict[str, int]:
    return {label: 0 for label, _ in RESPONSE_TIME_BUCKETS}


def bucket_for(latency_ms: float) -> str:
    """Return the histogram label for a successful response time."""
    for label, upper in RESPONSE_TIME_BUCKETS:
        if latency_ms < upper:
            return label
    return RESPONSE_TIME_BUCKETS[-1][0]


class ProbeVariant(StrEnum):
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class LoadShape(StrEnum):
    RANDOM_URL = "random_url"  # one sampled URL per user
    CROSS_PRODUCT = "cross_product"  # every user visits every URL


class WorkItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int = Field(ge=1)
    url: str
    probe_variant: ProbeVariant = ProbeVariant.CHROMIUM


class Outcome(BaseModel):
    """Result of probing one work item.

    A response with a status code below 400 is a success. Anything else, a
    thrown navigation error, a timeout or a 4xx/5xx status, is a failure.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    success: bool
    status_code: int | None = None
    error_message: str | None = None
    latency_ms: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_success_rule(self) -> "Outcome":
        if self.success and self.status_code is not None and self.status_code >= 400:
            raise ValueError(f"status {self.status_code} cannot be a successful outcome")
        if (
            not self.success
            and self.status_code is not None
            and self.status_code < 400
            and not self.error_message
        ):
            raise ValueError(f"status {self.status_code} without an error cannot be a failure")
        return self

    @classmethod
    def from_response(cls, url: str, status_code: int, latency_ms: float) -> "Outcome":
        return cls(
            url=url,
            success=status_code < 400,
            status_code=status_code,
            latency_ms=max(0, int(latency_ms)),
        )

    @classmethod
    def from_error(cls, url: str, message: str | None, latency_ms: float = 0) -> "Outcome":
        return cls(
            url=url,
            success=False,
            error_message=message,
            latency_ms=max(0, int(latency_ms)),
        )


class ProbeDiagnostics(BaseModel):
    """Side-channel detail captured during a visit, never read by the engine."""

    attempts: int = 1
    request_log: list[dict[str, Any]] = Field(default_factory=list)
    console_messages: list[dict[str, Any]] = Field(default_factory=list)
    page_errors: list[str] = Field(default_factory=list)
    page_content: str | None = None


class ProbeResult(BaseModel):
    outcome: Outcome
    diagnostics: ProbeDiagnostics = Field(default_factory=ProbeDiagnostics)


class PathMetric(BaseModel):
    model_config = ConfigDict(frozen=True)

    domain: str
    path: str
    requests: int = 0
    successes: int = 0
    total_response_time_ms: int = 0
    success_rate: int = 0
    avg_response_time: int = 0


class ErrorExample(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    error_message: str


class ErrorBucket(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int = 0
    examples: list[ErrorExample] = Field(default_factory=list)


class PathError(BaseModel):
    model_config = ConfigDict(frozen=True)

    error_type: str
    status_code: int | None = None
    error_message: str


class StepResult(BaseModel):
    """Finalized metrics for one load level."""

    model_config = ConfigDict(frozen=True)

    user_count: int
    started_at: datetime
    ended_at: datetime
    duration_seconds: float
    total_requests: int
    successful_requests: int
    failed_requests: int
    response_time_total_ms: int
    response_time_buckets: dict[str, int]
    success_rate: int
    avg_response_time: int
    requests_per_second: float
    path_metrics: dict[str, PathMetric] = Field(default_factory=dict)
    error_types: dict[str, ErrorBucket] = Field(default_factory=dict)
    status_code_counts: dict[int, int] = Field(default_factory=dict)
    errors_by_path: dict[str, list[PathError]] = Field(default_factory=dict)
    passed: bool | None = None


class CapacityResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_users: int
    steps: list[StepResult]
    max_supported_users: int
    started_at: datetime
    ended_at: datetime
    total_duration_seconds: float

    @property
    def last_passing_step(self) -> StepResult | None:
        for step in self.steps:
            if step.user_count == self.max_supported_users and step.passed:
                return step
        return None
