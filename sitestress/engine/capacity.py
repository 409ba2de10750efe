"""Capacity discovery by escalating the user count step by step.

Levels run at ``min, min + step, ...`` up to ``max``. A passing level becomes
the best known capacity; the first failing level ends the run. A failure at
the floor is recorded too and leaves the capacity at zero. Every attempted
step is kept for reporting.
"""

import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

import structlog

from sitestress.domain.models import CapacityResult, StepResult

from .step import StepConfig, StepController

logger = structlog.get_logger()


class DriverState(StrEnum):
    PROBING = "probing"
    PASSED = "passed"
    FAILED = "failed"
    DONE = "done"


@dataclass(frozen=True)
class CapacityPlan:
    min_users: int = 20
    max_users: int = 500
    step_size: int = 20

    def __post_init__(self) -> None:
        if self.min_users < 1:
            raise ValueError(f"min_users must be >= 1, got {self.min_users}")
        if self.step_size < 1:
            raise ValueError(f"step_size must be >= 1, got {self.step_size}")
        if self.max_users < self.min_users:
            raise ValueError(
                f"max_users ({self.max_users}) must be >= min_users ({self.min_users})"
            )

    def levels(self) -> list[int]:
        return list(range(self.min_users, self.max_users + 1, self.step_size))


class CapacityDriver:
    def __init__(self, controller: StepController, plan: CapacityPlan, urls: Sequence[str]) -> None:
        self.controller = controller
        self.plan = plan
        self.urls = list(urls)
        self.state = DriverState.PROBING

    async def run(self) -> CapacityResult:
        started_at = datetime.now(UTC)
        start = time.monotonic()
        steps: list[StepResult] = []
        max_supported = 0
        user_count = self.plan.min_users
        self.state = DriverState.PROBING

        logger.info(
            "capacity_test_started",
            min_users=self.plan.min_users,
            max_users=self.plan.max_users,
            step_size=self.plan.step_size,
        )

        while self.state != DriverState.DONE:
            result = await self.controller.execute_step(StepConfig(user_count, self.urls))
            steps.append(result)
            self.state = DriverState.PASSED if result.passed else DriverState.FAILED

            if self.state == DriverState.PASSED:
                max_supported = user_count
                logger.info("capacity_step_passed", user_count=user_count)
                next_count = user_count + self.plan.step_size
                if next_count <= self.plan.max_users:
                    user_count = next_count
                    self.state = DriverState.PROBING
                else:
                    self.state = DriverState.DONE
            else:
                logger.warning(
                    "capacity_step_failed",
                    user_count=user_count,
                    success_rate=result.success_rate,
                    avg_response_time_ms=result.avg_response_time,
                    at_floor=user_count == self.plan.min_users,
                )
                self.state = DriverState.DONE

        total_duration = time.monotonic() - start
        capacity = CapacityResult(
            min_users=self.plan.min_users,
            steps=steps,
            max_supported_users=max_supported,
            started_at=started_at,
            ended_at=datetime.now(UTC),
            total_duration_seconds=round(total_duration, 3),
        )
        logger.info(
            "capacity_test_completed",
            max_supported_users=max_supported,
            steps=len(steps),
            duration_seconds=capacity.total_duration_seconds,
        )
        return capacity
