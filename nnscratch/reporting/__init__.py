"""Reporting utilities for nnscratch."""

from .artifacts import write_manifest
from .metrics import CsvSink, JsonlSink
from .plots import PlotAdapter
from .summary import write_summary
from .timing import Stopwatch, benchmark_forward

__all__ = [
    "CsvSink",
    "JsonlSink",
    "PlotAdapter",
    "Stopwatch",
    "benchmark_forward",
    "write_manifest",
    "write_summary",
]
