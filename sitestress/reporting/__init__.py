"""Consumers of finalized step and capacity metrics."""

from .artifacts import DiagnosticsRecorder
from .json_report import ReportWriter
from .summary import log_capacity_summary, log_step_summary, readable_path

__all__ = [
    "DiagnosticsRecorder",
    "ReportWriter",
    "log_capacity_summary",
    "log_step_summary",
    "readable_path",
]
