"""One load level: build the work queue, run it, finalize and judge the step."""

import os
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import structlog

from sitestress.config import StressConfig
from sitestress.domain.models import LoadShape, ProbeVariant, StepResult, WorkItem
from sitestress.probes.base import Probe, ProbeOptions, RetryPolicy

from .aggregator import MetricsAggregator
from .scheduler import DEFAULT_PER_CPU, DEFAULT_UPPER_BOUND, WorkScheduler, compute_concurrency_limit

logger = structlog.get_logger()


@dataclass(frozen=True)
class StepConfig:
    user_count: int
    urls: Sequence[str]


@dataclass(frozen=True)
class Thresholds:
    success_rate_pct: float = 90.0
    response_time_ms: float = 60_000.0

    def evaluate(self, result: StepResult) -> bool:
        return (
            result.success_rate >= self.success_rate_pct
            and result.avg_response_time <= self.response_time_ms
        )


def build_work_items(
    user_count: int,
    urls: Sequence[str],
    shape: LoadShape = LoadShape.RANDOM_URL,
    browsers: Sequence[ProbeVariant] = (ProbeVariant.CHROMIUM,),
    rng: random.Random | None = None,
) -> list[WorkItem]:
    """Pair synthetic users with URLs according to the load shape.

    ``RANDOM_URL`` gives each user one uniformly sampled URL; ``CROSS_PRODUCT``
    sends every user to every URL. Browsers are assigned round-robin by user.
    """
    if user_count < 1:
        raise ValueError(f"user_count must be >= 1, got {user_count}")
    if not urls:
        raise ValueError("urls must not be empty")
    if not browsers:
        raise ValueError("browsers must not be empty")
    rng = rng or random.Random()

    items: list[WorkItem] = []
    for user_id in range(1, user_count + 1):
        variant = browsers[(user_id - 1) % len(browsers)]
        if shape == LoadShape.CROSS_PRODUCT:
            items.extend(WorkItem(user_id=user_id, url=url, probe_variant=variant) for url in urls)
        else:
            items.append(WorkItem(user_id=user_id, url=rng.choice(urls), probe_variant=variant))
    return items


class StepController:
    """Runs a single step and annotates its result with pass/fail."""

    def __init__(
        self,
        probe: Probe,
        thresholds: Thresholds | None = None,
        scheduler: WorkScheduler | None = None,
        shape: LoadShape = LoadShape.RANDOM_URL,
        browsers: Sequence[ProbeVariant] = (ProbeVariant.CHROMIUM,),
        probe_options: ProbeOptions | None = None,
        cpu_count: int | None = None,
        per_cpu: int = DEFAULT_PER_CPU,
        concurrency_cap: int = DEFAULT_UPPER_BOUND,
        rng: random.Random | None = None,
        aggregator_factory: Callable[[int], MetricsAggregator] = MetricsAggregator,
        on_step_complete: Callable[[StepResult], None] | None = None,
    ) -> None:
        self.probe = probe
        self.thresholds = thresholds or Thresholds()
        self.scheduler = scheduler or WorkScheduler(rng=rng)
        self.shape = shape
        self.browsers = tuple(browsers)
        self.probe_options = probe_options or ProbeOptions()
        self.cpu_count = cpu_count or os.cpu_count() or 1
        self.per_cpu = per_cpu
        self.concurrency_cap = concurrency_cap
        self._rng = rng or random.Random()
        self._aggregator_factory = aggregator_factory
        self._on_step_complete = on_step_complete

    @classmethod
    def from_config(cls, config: StressConfig, probe: Probe, **kwargs) -> "StepController":
        probe_cfg = config.probe
        options = ProbeOptions(
            timeout_ms=probe_cfg.timeout_ms,
            retry=RetryPolicy(
                max_retries=probe_cfg.max_retries,
                backoff_seconds=probe_cfg.retry_backoff_seconds,
            ),
            think_time_min_ms=probe_cfg.user_delay_min_ms,
            think_time_max_ms=probe_cfg.user_delay_max_ms,
        )
        return cls(
            probe=probe,
            thresholds=Thresholds(
                success_rate_pct=config.thresholds.success_rate_pct,
                response_time_ms=config.thresholds.response_time_ms,
            ),
            shape=config.load.shape,
            browsers=config.load.browsers,
            probe_options=options,
            per_cpu=config.concurrency.per_cpu,
            concurrency_cap=config.concurrency.cap,
            **kwargs,
        )

    async def execute_step(self, config: StepConfig) -> StepResult:
        items = build_work_items(
            config.user_count, config.urls, self.shape, self.browsers, self._rng
        )
        concurrency = compute_concurrency_limit(
            config.user_count, self.cpu_count, self.per_cpu, self.concurrency_cap
        )
        logger.info(
            "step_started",
            user_count=config.user_count,
            urls=len(config.urls),
            work_items=len(items),
            concurrency=concurrency,
            shape=str(self.shape),
        )

        aggregator = self._aggregator_factory(config.user_count)
        await self.scheduler.run(items, concurrency, self.probe, aggregator, self.probe_options)
        finalized = aggregator.finalize()

        passed = self.thresholds.evaluate(finalized)
        result = finalized.model_copy(update={"passed": passed})
        logger.info(
            "step_completed",
            user_count=result.user_count,
            success_rate=result.success_rate,
            avg_response_time_ms=result.avg_response_time,
            requests_per_second=result.requests_per_second,
            passed=passed,
        )

        if self._on_step_complete is not None:
            self._on_step_complete(result)
        return result
