"""Wall-clock instrumentation for pipeline phases."""

from __future__ import annotations

import time
from typing import Dict, Sequence

from ..core.network import Network
from ..core.types import LabeledExample


class Stopwatch:
    """Context manager measuring elapsed milliseconds.

    Finished measurements are stored in ``timings`` under ``label`` and echoed
    as ``"<message> in <ms> ms"`` when ``verbose`` is set::

        timings = {}
        with Stopwatch("load", "Loaded dataset", timings):
            ...
    """

    def __init__(
        self,
        label: str,
        message: str | None = None,
        timings: Dict[str, float] | None = None,
        *,
        verbose: bool = True,
    ) -> None:
        self.label = label
        self.message = message or label
        self.timings = timings if timings is not None else {}
        self.verbose = verbose
        self.elapsed_ms = 0.0
        self._start = 0.0

    def __enter__(self) -> "Stopwatch":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
        if exc_type is None:
            self.timings[self.label] = self.elapsed_ms
            if self.verbose:
                print(f"{self.message} in {self.elapsed_ms:.0f} ms")


def benchmark_forward(
    network: Network, examples: Sequence[LabeledExample], iterations: int
) -> float:
    """Average milliseconds per ``network.forward`` over ``iterations`` calls."""

    if iterations <= 0:
        raise ValueError(f"iterations must be positive, got {iterations}")
    if not examples:
        raise ValueError("benchmark_forward requires at least one example")
    start = time.perf_counter()
    for i in range(iterations):
        network.forward(examples[i % len(examples)].features)
    return (time.perf_counter() - start) * 1000.0 / iterations


__all__ = ["Stopwatch", "benchmark_forward"]
