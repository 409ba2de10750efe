"""Load-test domain: work items, outcomes, step metrics and error classification."""

from .classification import (
    MESSAGE_RULES,
    ClassificationRule,
    ProbeErrorKind,
    classify_error,
    error_kind,
)
from .models import (
    RESPONSE_TIME_BUCKETS,
    CapacityResult,
    ErrorBucket,
    ErrorExample,
    LoadShape,
    Outcome,
    PathError,
    PathMetric,
    ProbeDiagnostics,
    ProbeResult,
    ProbeVariant,
    StepResult,
    WorkItem,
)

__all__ = [
    "MESSAGE_RULES",
    "RESPONSE_TIME_BUCKETS",
    "CapacityResult",
    "ClassificationRule",
    "ErrorBucket",
    "ErrorExample",
    "LoadShape",
    "Outcome",
    "PathError",
    "PathMetric",
    "ProbeDiagnostics",
    "ProbeErrorKind",
    "ProbeResult",
    "ProbeVariant",
    "StepResult",
    "WorkItem",
    "classify_error",
    "error_kind",
]
