"""Tests for step metrics aggregation."""

import random
import threading
from collections import Counter
from datetime import UTC, datetime

import pytest

from sitestress.domain.models import MAX_ERRORS_PER_PATH, MAX_EXAMPLES_PER_ERROR_TYPE, Outcome
from sitestress.engine.aggregator import (
    MetricsAggregator,
    average,
    percentage,
    round_half_up,
    split_url,
)
from sitestress.exceptions import AggregatorClosedError

URL = "https://example.com/about"
WALL = datetime(2026, 1, 15, 10, 30, tzinfo=UTC)


def make_aggregator(user_count: int = 10, duration: float = 2.0) -> MetricsAggregator:
    ticks = iter([100.0, 100.0 + duration])
    return MetricsAggregator(user_count, clock=lambda: next(ticks), wall_clock=lambda: WALL)


class TestRounding:
    @pytest.mark.parametrize("value, expected", [(0.5, 1), (1.5, 2), (2.5, 3), (2.49, 2), (0.0, 0)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_percentage(self):
        assert percentage(1, 8) == 13
        assert percentage(9, 10) == 90
        assert percentage(0, 0) == 0

    def test_average(self):
        assert average(5, 2) == 3
        assert average(0, 0) == 0


class TestSplitUrl:
    def test_empty_path_is_root(self):
        assert split_url("https://example.com") == ("https://example.com", "/")

    def test_path_kept(self):
        assert split_url("https://example.com/zh/about?x=1") == ("https://example.com", "/zh/about")


class TestMetricsAggregator:
    def test_all_successful(self):
        agg = make_aggregator(user_count=10, duration=2.0)
        for i in range(10):
            if i % 2:
                agg.ingest(Outcome(url=URL, success=True, latency_ms=200))
            else:
                agg.ingest(Outcome.from_response(URL, 200, 200))

        result = agg.finalize()

        assert result.total_requests == 10
        assert result.successful_requests == 10
        assert result.failed_requests == 0
        assert result.success_rate == 100
        assert result.avg_response_time == 200
        assert result.requests_per_second == 5.0
        assert result.response_time_buckets["< 500ms"] == 10
        assert result.error_types == {}
        assert result.status_code_counts == {}
        metric = result.path_metrics["https://example.com/about"]
        assert metric.requests == 10
        assert metric.success_rate == 100
        assert metric.avg_response_time == 200

    def test_mixed_outcomes(self):
        agg = make_aggregator(user_count=5)
        for _ in range(4):
            agg.ingest(Outcome.from_response(URL, 200, 600))
        agg.ingest(Outcome.from_response(URL, 503, 50))

        result = agg.finalize()

        assert result.success_rate == 80
        assert result.avg_response_time == 600
        assert result.response_time_total_ms == 2400
        assert result.response_time_buckets["500ms-1s"] == 4
        assert result.status_code_counts == {503: 1}
        bucket = result.error_types["HTTP 503"]
        assert bucket.count == 1
        assert bucket.examples[0].url == URL
        assert bucket.examples[0].error_message == "Status code: 503"
        [path_error] = result.errors_by_path["https://example.com/about"]
        assert path_error.error_type == "HTTP 503"
        assert path_error.status_code == 503

    def test_failed_latency_excluded_from_average(self):
        agg = make_aggregator()
        agg.ingest(Outcome.from_response(URL, 200, 100))
        agg.ingest(Outcome.from_error(URL, "Navigation timeout of 30000ms exceeded", 30_000))

        result = agg.finalize()

        assert result.avg_response_time == 100
        assert sum(result.response_time_buckets.values()) == 1
        assert result.error_types["Timeout"].count == 1
        assert result.status_code_counts == {}

    def test_conservation(self, rng):
        agg = make_aggregator(user_count=200)
        for i in range(200):
            if rng.random() < 0.7:
                agg.ingest(Outcome.from_response(f"https://example.com/p{i % 4}", 200, rng.randint(0, 15_000)))
            else:
                agg.ingest(Outcome.from_error(f"https://example.com/p{i % 4}", "net::ERR_FAILED"))

        result = agg.finalize()

        assert result.successful_requests + result.failed_requests == result.total_requests == 200
        assert sum(result.response_time_buckets.values()) == result.successful_requests
        assert sum(b.count for b in result.error_types.values()) == result.failed_requests
        assert sum(m.requests for m in result.path_metrics.values()) == 200

    def test_examples_are_bounded(self):
        agg = make_aggregator()
        for i in range(20):
            agg.ingest(Outcome.from_error(f"https://example.com/p{i}", "net::ERR_FAILED"))
        for i in range(20):
            agg.ingest(Outcome.from_response(URL, 500 + i % 3, 10))

        result = agg.finalize()

        assert result.error_types["Network Error"].count == 20
        assert len(result.error_types["Network Error"].examples) == MAX_EXAMPLES_PER_ERROR_TYPE
        assert len(result.errors_by_path["https://example.com/about"]) == MAX_ERRORS_PER_PATH

    def test_order_independent(self):
        outcomes = [Outcome.from_response(f"https://example.com/p{i % 3}", 200, i * 37) for i in range(30)]
        outcomes += [Outcome.from_error(f"https://example.com/p{i}", f"net::ERR_{i}") for i in range(12)]
        outcomes += [Outcome.from_response(URL, 502, 5) for _ in range(7)]

        results = []
        for seed in (1, 2, 3):
            shuffled = list(outcomes)
            random.Random(seed).shuffle(shuffled)
            agg = make_aggregator(user_count=len(outcomes))
            for outcome in shuffled:
                agg.ingest(outcome)
            results.append(agg.finalize())

        assert results[0] == results[1] == results[2]


CONCURRENT_PATHS = ["/", "/about", "/contact", "/zh/about"]


def concurrent_outcome(worker: int, i: int) -> Outcome:
    url = "https://example.com" + CONCURRENT_PATHS[(worker + i) % len(CONCURRENT_PATHS)]
    if i % 5 == 0:
        return Outcome.from_error(url, f"Navigation timeout {worker}-{i}")
    return Outcome.from_response(url, 200, 100 * worker)


class TestConcurrentIngest:
    WORKERS = 8
    PER_WORKER = 50

    def test_no_lost_updates_across_paths(self):
        agg = MetricsAggregator(user_count=self.WORKERS * self.PER_WORKER)
        barrier = threading.Barrier(self.WORKERS)

        def worker(n: int) -> None:
            barrier.wait()
            for i in range(self.PER_WORKER):
                agg.ingest(concurrent_outcome(n, i))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(self.WORKERS)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        expected_requests: Counter = Counter()
        expected_successes: Counter = Counter()
        for n in range(self.WORKERS):
            for i in range(self.PER_WORKER):
                outcome = concurrent_outcome(n, i)
                key = "".join(split_url(outcome.url))
                expected_requests[key] += 1
                expected_successes[key] += outcome.success

        result = agg.finalize()

        assert result.total_requests == 400
        assert result.successful_requests == 320
        assert result.failed_requests == 80
        assert result.error_types["Timeout"].count == 80
        assert sum(m.requests for m in result.path_metrics.values()) == result.total_requests
        assert set(result.path_metrics) == set(expected_requests)
        for key, metric in result.path_metrics.items():
            assert metric.requests == expected_requests[key]
            assert metric.successes == expected_successes[key]
        assert set(result.errors_by_path) == set(expected_requests)
        for errors in result.errors_by_path.values():
            assert len(errors) == MAX_ERRORS_PER_PATH
        assert len(result.error_types["Timeout"].examples) == MAX_EXAMPLES_PER_ERROR_TYPE

    def test_finalize_is_repeatable(self):
        agg = make_aggregator()
        agg.ingest(Outcome.from_response(URL, 200, 300))
        first = agg.finalize()
        second = agg.finalize()
        assert first == second
        assert agg.finalized is True

    def test_ingest_after_finalize_rejected(self):
        agg = make_aggregator()
        agg.finalize()
        with pytest.raises(AggregatorClosedError):
            agg.ingest(Outcome.from_response(URL, 200, 10))

    def test_requests_per_second_rounded(self):
        agg = make_aggregator(duration=3.0)
        for _ in range(7):
            agg.ingest(Outcome.from_response(URL, 200, 10))
        assert agg.finalize().requests_per_second == 2.33

    def test_zero_duration_has_zero_throughput(self):
        agg = make_aggregator(duration=0.0)
        agg.ingest(Outcome.from_response(URL, 200, 10))
        assert agg.finalize().requests_per_second == 0

    def test_empty_step(self):
        result = make_aggregator().finalize()
        assert result.total_requests == 0
        assert result.success_rate == 0
        assert result.avg_response_time == 0
        assert result.started_at == WALL
