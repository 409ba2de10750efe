"""Step-scoped metrics accumulator.

``MetricsAggregator.ingest`` is the only mutation point and is guarded by a
lock, so probe tasks (or worker threads) can feed it concurrently. Derived
fields are computed only in ``finalize``, from the raw counters, and never
written back.
"""

import math
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from urllib.parse import urlsplit

import structlog

from sitestress.domain.classification import classify_error
from sitestress.domain.models import (
    MAX_ERRORS_PER_PATH,
    MAX_EXAMPLES_PER_ERROR_TYPE,
    ErrorBucket,
    ErrorExample,
    Outcome,
    PathError,
    PathMetric,
    StepResult,
    bucket_for,
    empty_buckets,
)
from sitestress.exceptions import AggregatorClosedError

logger = structlog.get_logger()


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values, like ``Math.round``."""
    return math.floor(value + 0.5)


def percentage(part: int, whole: int) -> int:
    return round_half_up(part / whole * 100) if whole > 0 else 0


def average(total: int, count: int) -> int:
    return round_half_up(total / count) if count > 0 else 0


def split_url(url: str) -> tuple[str, str]:
    """Return ``(origin, path)`` with an empty path normalized to ``/``."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}", parts.path or "/"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class OutcomeSink(ABC):
    @abstractmethod
    def ingest(self, outcome: Outcome) -> None:
        ...


@dataclass
class _PathCounter:
    domain: str
    path: str
    requests: int = 0
    successes: int = 0
    total_response_time_ms: int = 0


@dataclass
class _ErrorCounter:
    count: int = 0
    examples: list[ErrorExample] = field(default_factory=list)


def _keep_smallest(items: list, item, limit: int, key: Callable) -> None:
    # Bounded and independent of arrival order: retain the `limit` smallest.
    if len(items) >= limit and key(item) >= key(items[-1]):
        return
    items.append(item)
    items.sort(key=key)
    del items[limit:]


def _example_key(example: ErrorExample) -> tuple:
    return (example.url, example.error_message)


def _path_error_key(error: PathError) -> tuple:
    return (error.error_type, error.status_code or 0, error.error_message)


class MetricsAggregator(OutcomeSink):
    """Accumulates outcomes for one step and produces its ``StepResult``."""

    def __init__(
        self,
        user_count: int,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.user_count = user_count
        self._clock = clock
        self._wall_clock = wall_clock
        self._lock = threading.Lock()

        self._started = clock()
        self._started_at = wall_clock()
        self._ended: float | None = None
        self._ended_at: datetime | None = None

        self._total = 0
        self._successful = 0
        self._failed = 0
        self._response_time_total = 0
        self._buckets = empty_buckets()
        self._paths: dict[str, _PathCounter] = {}
        self._errors: dict[str, _ErrorCounter] = {}
        self._status_codes: dict[int, int] = {}
        self._errors_by_path: dict[str, list[PathError]] = {}

    @property
    def finalized(self) -> bool:
        return self._ended is not None

    def ingest(self, outcome: Outcome) -> None:
        domain, path = split_url(outcome.url)
        path_key = domain + path

        with self._lock:
            if self._ended is not None:
                raise AggregatorClosedError("outcome ingested after the step was finalized")

            self._total += 1
            counter = self._paths.get(path_key)
            if counter is None:
                counter = self._paths[path_key] = _PathCounter(domain=domain, path=path)
            counter.requests += 1

            if outcome.success:
                self._successful += 1
                self._response_time_total += outcome.latency_ms
                self._buckets[bucket_for(outcome.latency_ms)] += 1
                counter.successes += 1
                counter.total_response_time_ms += outcome.latency_ms
            else:
                self._failed += 1
                self._record_failure(path_key, outcome)

    def _record_failure(self, path_key: str, outcome: Outcome) -> None:
        error_type = classify_error(outcome.status_code, outcome.error_message)
        message = outcome.error_message or f"Status code: {outcome.status_code}"

        bucket = self._errors.setdefault(error_type, _ErrorCounter())
        bucket.count += 1
        _keep_smallest(
            bucket.examples,
            ErrorExample(url=outcome.url, error_message=message),
            MAX_EXAMPLES_PER_ERROR_TYPE,
            _example_key,
        )

        if outcome.status_code:
            self._status_codes[outcome.status_code] = (
                self._status_codes.get(outcome.status_code, 0) + 1
            )

        _keep_smallest(
            self._errors_by_path.setdefault(path_key, []),
            PathError(error_type=error_type, status_code=outcome.status_code, error_message=message),
            MAX_ERRORS_PER_PATH,
            _path_error_key,
        )

    def finalize(self) -> StepResult:
        """Freeze the step end time and derive rates and averages.

        Safe to call more than once; later calls reuse the first end time and
        return an equal result.
        """
        with self._lock:
            if self._ended is None:
                self._ended = self._clock()
                self._ended_at = self._wall_clock()
                logger.debug(
                    "aggregator_finalized",
                    user_count=self.user_count,
                    total_requests=self._total,
                )
            duration = max(0.0, self._ended - self._started)

            rps = round_half_up(self._total / duration * 100) / 100 if duration > 0 else 0.0

            path_metrics = {
                key: PathMetric(
                    domain=c.domain,
                    path=c.path,
                    requests=c.requests,
                    successes=c.successes,
                    total_response_time_ms=c.total_response_time_ms,
                    success_rate=percentage(c.successes, c.requests),
                    avg_response_time=average(c.total_response_time_ms, c.successes),
                )
                for key, c in self._paths.items()
            }
            error_types = {
                error_type: ErrorBucket(count=e.count, examples=list(e.examples))
                for error_type, e in self._errors.items()
            }

            return StepResult(
                user_count=self.user_count,
                started_at=self._started_at,
                ended_at=self._ended_at,
                duration_seconds=round(duration, 3),
                total_requests=self._total,
                successful_requests=self._successful,
                failed_requests=self._failed,
                response_time_total_ms=self._response_time_total,
                response_time_buckets=dict(self._buckets),
                success_rate=percentage(self._successful, self._total),
                avg_response_time=average(self._response_time_total, self._successful),
                requests_per_second=rps,
                path_metrics=path_metrics,
                error_types=error_types,
                status_code_counts=dict(self._status_codes),
                errors_by_path={k: list(v) for k, v in self._errors_by_path.items()},
            )
