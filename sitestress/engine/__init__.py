"""Load-test engine: scheduler, metrics aggregation, steps and capacity escalation."""

from .aggregator import MetricsAggregator, OutcomeSink, round_half_up, split_url
from .capacity import CapacityDriver, CapacityPlan, DriverState
from .scheduler import WorkScheduler, compute_concurrency_limit
from .step import StepConfig, StepController, Thresholds, build_work_items

__all__ = [
    "CapacityDriver",
    "CapacityPlan",
    "DriverState",
    "MetricsAggregator",
    "OutcomeSink",
    "StepConfig",
    "StepController",
    "Thresholds",
    "WorkScheduler",
    "build_work_items",
    "compute_concurrency_limit",
    "round_half_up",
    "split_url",
]
