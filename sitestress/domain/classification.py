"""Ordered error classification for failed outcomes.

Rules are evaluated in list order and the first match wins. A navigation
timeout message such as ``"Navigation timeout of 30000ms exceeded"`` is
therefore a ``Timeout``, not a ``Navigation Error``.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

UNKNOWN_ERROR = "Unknown Error"


class ProbeErrorKind(StrEnum):
    TIMEOUT = "ProbeTimeout"
    NETWORK = "ProbeNetworkError"
    TLS = "ProbeTLSError"
    NAVIGATION = "ProbeNavigationError"
    HTTP_STATUS = "HTTPStatusError"
    UNKNOWN = "UnknownProbeError"


@dataclass(frozen=True)
class ClassificationRule:
    """A message predicate and the error type label it assigns."""

    label: str
    kind: ProbeErrorKind
    predicate: Callable[[str], bool]

    def matches(self, message: str) -> bool:
        return self.predicate(message)


def _contains(fragment: str) -> Callable[[str], bool]:
    return lambda message: fragment in message


# Message rules in evaluation order
MESSAGE_RULES: list[ClassificationRule] = [
    ClassificationRule("Timeout", ProbeErrorKind.TIMEOUT, _contains("timeout")),
    ClassificationRule("Network Error", ProbeErrorKind.NETWORK, _contains("net::")),
    ClassificationRule("SSL Error", ProbeErrorKind.TLS, _contains("SSL")),
    ClassificationRule("Navigation Error", ProbeErrorKind.NAVIGATION, _contains("Navigation")),
]

_KIND_BY_LABEL = {rule.label: rule.kind for rule in MESSAGE_RULES}


def _leading_fragment(message: str) -> str:
    short = message.split(":", 1)[0].strip()
    return short or UNKNOWN_ERROR


def classify_error(
    status_code: int | None,
    error_message: str | None,
    rules: list[ClassificationRule] | None = None,
) -> str:
    """Return the error type label for a failed outcome."""
    if status_code:
        return f"HTTP {status_code}"
    if not error_message:
        return UNKNOWN_ERROR
    for rule in rules if rules is not None else MESSAGE_RULES:
        if rule.matches(error_message):
            return rule.label
    return _leading_fragment(error_message)


def error_kind(label: str) -> ProbeErrorKind:
    """Map an error type label back onto the probe error taxonomy."""
    if label.startswith("HTTP "):
        return ProbeErrorKind.HTTP_STATUS
    return _KIND_BY_LABEL.get(label, ProbeErrorKind.UNKNOWN)
