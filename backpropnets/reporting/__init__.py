"""Reporting utilities for backpropnets."""

from .artifacts import write_manifest
from .logs import configure_logging
from .metrics import CsvSink, JsonlSink, MetricsCapture
from .plots import plot_history, plot_reconstruction

__all__ = [
    "write_manifest",
    "configure_logging",
    "CsvSink",
    "JsonlSink",
    "MetricsCapture",
    "plot_history",
    "plot_reconstruction",
]
