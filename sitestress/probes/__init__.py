"""Probe backends that perform one simulated visit per work item."""

from .base import (
    BaseProbe,
    NavigationFailure,
    Probe,
    ProbeOptions,
    ProbeSession,
    RetryPolicy,
)
from .http import HttpProbe


def probe_factory(backend: str, **kwargs) -> Probe:
    """Build the probe for *backend* (``"http"`` or ``"browser"``)."""
    if backend == "http":
        return HttpProbe(**kwargs)
    if backend == "browser":
        from .browser import BrowserProbe

        return BrowserProbe(**kwargs)
    raise ValueError(f"Unknown probe backend: {backend}")


__all__ = [
    "BaseProbe",
    "HttpProbe",
    "NavigationFailure",
    "Probe",
    "ProbeOptions",
    "ProbeSession",
    "RetryPolicy",
    "probe_factory",
]
