"""Failure diagnostics dumps for a sample of users."""

import json
import re
import time
from pathlib import Path

import structlog

from sitestress.domain.models import ProbeResult, WorkItem

logger = structlog.get_logger()


def safe_url_fragment(url: str, limit: int = 50) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", url)[:limit]


class DiagnosticsRecorder:
    """Writes the diagnostics bundle of failed visits for every Nth user.

    Write errors are logged and never interrupt the run.
    """

    def __init__(self, log_dir: str | Path, every_nth_user: int = 10) -> None:
        self.log_dir = Path(log_dir)
        self.every_nth_user = every_nth_user
        self.written: list[Path] = []

    def __call__(self, item: WorkItem, result: ProbeResult) -> None:
        if result.outcome.success or item.user_id % self.every_nth_user != 0:
            return
        stamp = int(time.time() * 1000)
        path = self.log_dir / f"error_{safe_url_fragment(item.url)}_{item.user_id}_{stamp}.json"
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            with open(path, "w") as f:
                json.dump(
                    {
                        "work_item": item.model_dump(mode="json"),
                        "outcome": result.outcome.model_dump(mode="json"),
                        "diagnostics": result.diagnostics.model_dump(mode="json"),
                    },
                    f,
                    indent=2,
                )
        except OSError as exc:
            logger.error("diagnostics_write_failed", path=str(path), error=str(exc))
            return
        self.written.append(path)
