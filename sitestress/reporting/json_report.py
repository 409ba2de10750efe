"""JSON report files for steps, fixed runs and capacity tests."""

import json
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel

from sitestress.domain.models import CapacityResult, StepResult

from .summary import readable_path, sorted_error_types, sorted_path_metrics

logger = structlog.get_logger()


def step_document(result: StepResult) -> dict[str, Any]:
    """StepResult plus the ordered views a renderer needs."""
    doc = result.model_dump(mode="json")
    doc["paths_by_requests"] = [
        {**m.model_dump(mode="json"), "readable_path": readable_path(m.path)}
        for m in sorted_path_metrics(result)
    ]
    doc["error_types_by_count"] = [
        {"type": error_type, **bucket.model_dump(mode="json")}
        for error_type, bucket in sorted_error_types(result)
    ]
    return doc


def capacity_document(capacity: CapacityResult) -> dict[str, Any]:
    return {
        "max_supported_users": capacity.max_supported_users,
        "min_users": capacity.min_users,
        "started_at": capacity.started_at.isoformat(),
        "ended_at": capacity.ended_at.isoformat(),
        "total_duration_seconds": capacity.total_duration_seconds,
        "steps": [
            {
                "user_count": s.user_count,
                "success_rate": s.success_rate,
                "avg_response_time": s.avg_response_time,
                "requests_per_second": s.requests_per_second,
                "total_requests": s.total_requests,
                "passed": s.passed,
            }
            for s in capacity.steps
        ],
    }


class ReportWriter:
    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)

    def _write(self, filename: str, payload: dict[str, Any] | BaseModel) -> Path:
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / filename
        with open(path, "w") as f:
            json.dump(payload, f, indent=2, default=str)
        logger.info("report_written", path=str(path))
        return path

    def write_step(self, result: StepResult) -> Path:
        return self._write(f"step_report_{result.user_count}_users.json", step_document(result))

    def write_run(self, result: StepResult) -> Path:
        return self._write("stress_report.json", step_document(result))

    def write_capacity(self, capacity: CapacityResult) -> Path:
        return self._write("capacity_report.json", capacity_document(capacity))
