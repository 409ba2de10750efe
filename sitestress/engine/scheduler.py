"""Bounded worker-pool scheduler for probe work items.

The queue is shuffled, then drained by a single admission loop that keeps at
most ``concurrency_limit`` probe tasks in flight and waits for the first of
them to finish before admitting more. Every item produces exactly one outcome
on the sink, whether the probe succeeded, reported a failure or raised.
"""

import asyncio
import random
from collections import deque
from collections.abc import Callable, Sequence

import structlog

from sitestress.domain.models import Outcome, ProbeResult, WorkItem
from sitestress.probes.base import Probe, ProbeOptions

from .aggregator import OutcomeSink

logger = structlog.get_logger()

DEFAULT_PER_CPU = 2
DEFAULT_UPPER_BOUND = 20


def compute_concurrency_limit(
    demand: int,
    cpu_count: int,
    per_cpu: int = DEFAULT_PER_CPU,
    upper_bound: int = DEFAULT_UPPER_BOUND,
) -> int:
    """Concurrency for a step: scaled by CPUs, at least 2, at most *upper_bound*,
    and never more than *demand*."""
    system = max(2, min(cpu_count * per_cpu, upper_bound))
    return max(1, min(system, demand))


class WorkScheduler:
    def __init__(
        self,
        rng: random.Random | None = None,
        progress_every: int = 10,
        on_result: Callable[[WorkItem, ProbeResult], None] | None = None,
    ) -> None:
        self._rng = rng or random.Random()
        self._progress_every = progress_every
        self._on_result = on_result

    def shuffle(self, items: Sequence[WorkItem]) -> list[WorkItem]:
        # random.shuffle is a uniform Fisher-Yates shuffle
        queue = list(items)
        self._rng.shuffle(queue)
        return queue

    async def run(
        self,
        items: Sequence[WorkItem],
        concurrency_limit: int,
        probe: Probe,
        sink: OutcomeSink,
        options: ProbeOptions | None = None,
    ) -> None:
        if not items:
            raise ValueError("items must not be empty")
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")

        base_options = options or ProbeOptions()
        queue = deque(self.shuffle(items))
        total = len(queue)
        in_flight: set[asyncio.Task[tuple[WorkItem, ProbeResult]]] = set()
        completed = 0

        logger.info("scheduler_started", work_items=total, concurrency=concurrency_limit)

        try:
            while queue or in_flight:
                while queue and len(in_flight) < concurrency_limit:
                    item = queue.popleft()
                    in_flight.add(asyncio.create_task(self._execute(item, probe, base_options)))

                done, in_flight = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    item, result = task.result()
                    sink.ingest(result.outcome)
                    if self._on_result is not None:
                        self._on_result(item, result)
                    completed += 1
                    if self._progress_every and completed % self._progress_every == 0:
                        logger.info(
                            "scheduler_progress",
                            completed=completed,
                            total=total,
                            in_flight=len(in_flight),
                        )
        finally:
            if in_flight:
                for task in in_flight:
                    task.cancel()
                await asyncio.gather(*in_flight, return_exceptions=True)
                logger.warning("scheduler_cancelled", abandoned=len(in_flight) + len(queue))

        logger.info("scheduler_drained", completed=completed)

    async def _execute(
        self, item: WorkItem, probe: Probe, options: ProbeOptions
    ) -> tuple[WorkItem, ProbeResult]:
        item_options = options.for_user(item.user_id, item.probe_variant)
        try:
            result = await probe.visit(item.user_id, item.url, item_options)
        except Exception as exc:
            logger.exception("probe_crashed", user_id=item.user_id, url=item.url)
            outcome = Outcome.from_error(item.url, str(exc) or type(exc).__name__)
            return item, ProbeResult(outcome=outcome)
        return item, result
