"""Console summaries of step and capacity results."""

import re

import structlog

from sitestress.domain.models import CapacityResult, ErrorBucket, PathMetric, StepResult

logger = structlog.get_logger()


def readable_path(path: str) -> str:
    """``"/zh/about"`` -> ``"Zh / About"``; the root path is ``"Home"``."""
    if path in ("", "/"):
        return "Home"
    readable = re.sub(r"^/", "", path).replace("/", " / ")
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), readable)


def sorted_path_metrics(result: StepResult) -> list[PathMetric]:
    return sorted(result.path_metrics.values(), key=lambda m: m.requests, reverse=True)


def sorted_error_types(result: StepResult) -> list[tuple[str, ErrorBucket]]:
    return sorted(result.error_types.items(), key=lambda kv: kv[1].count, reverse=True)


def format_duration(seconds: float) -> str:
    return f"{int(seconds // 60)}m {round(seconds % 60)}s"


def log_step_summary(result: StepResult) -> None:
    logger.info(
        "step_summary",
        user_count=result.user_count,
        total_requests=result.total_requests,
        successful=result.successful_requests,
        failed=result.failed_requests,
        success_rate=f"{result.success_rate}%",
        avg_response_time=f"{result.avg_response_time}ms",
        requests_per_second=result.requests_per_second,
        passed=result.passed,
    )
    for metric in sorted_path_metrics(result):
        logger.info(
            "path_summary",
            domain=metric.domain,
            path=readable_path(metric.path),
            requests=metric.requests,
            success_rate=f"{metric.success_rate}%",
            avg_response_time=f"{metric.avg_response_time}ms",
            has_errors=f"{metric.domain}{metric.path}" in result.errors_by_path,
        )
    for error_type, bucket in sorted_error_types(result):
        logger.info("error_summary", error_type=error_type, count=bucket.count)


def log_capacity_summary(capacity: CapacityResult) -> None:
    best = capacity.last_passing_step
    if best is not None:
        logger.info(
            "capacity_found",
            max_supported_users=capacity.max_supported_users,
            success_rate=f"{best.success_rate}%",
            avg_response_time=f"{best.avg_response_time}ms",
            total_duration=format_duration(capacity.total_duration_seconds),
        )
    else:
        logger.warning(
            "capacity_not_found",
            min_users=capacity.min_users,
            message=f"site could not handle {capacity.min_users} concurrent users within thresholds",
            total_duration=format_duration(capacity.total_duration_seconds),
        )
