"""Core typing contracts for nnscratch."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np

Array = np.ndarray

DEFAULT_DTYPE = np.float32


class DimensionMismatchError(ValueError):
    """Raised when a vector or matrix does not have the expected shape."""


def float_copy(values: Sequence[float] | Array) -> Array:
    """Copy ``values`` into a new floating-point array.

    Floating inputs keep their precision; anything else becomes ``DEFAULT_DTYPE``.
    """

    arr = np.asarray(values)
    dtype = arr.dtype if np.issubdtype(arr.dtype, np.floating) else DEFAULT_DTYPE
    return np.array(arr, dtype=dtype)


def _frozen_array(values: Sequence[float] | Array, dtype) -> Array:
    arr = np.array(values, dtype=dtype)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class LabeledExample:
    """A single row of a dataset: one-hot ``label`` and flat ``features``."""

    label: Array
    features: Array
    dtype: type = field(default=DEFAULT_DTYPE, repr=False, compare=False)

    def __post_init__(self) -> None:
        label = _frozen_array(self.label, self.dtype)
        features = _frozen_array(self.features, self.dtype)
        if label.ndim != 1 or features.ndim != 1:
            raise DimensionMismatchError(
                f"label and features must be vectors, got {label.shape} and {features.shape}"
            )
        object.__setattr__(self, "label", label)
        object.__setattr__(self, "features", features)


@dataclass
class ActivationTrace:
    """Pre- and post-activation vectors captured during one forward pass.

    ``activations[0]`` is the input; ``weighted_inputs[i]`` and
    ``activations[i + 1]`` belong to layer ``i``.
    """

    weighted_inputs: List[Array]
    activations: List[Array]

    @property
    def output(self) -> Array:
        return self.activations[-1]


@dataclass(frozen=True)
class ModelDescription:
    """Description of the feed-forward network architecture."""

    layer_sizes: List[int]
    activations: List[str]
    cost: str
    l2: float = 0.0


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`nnscratch.training.pipelines.run_pipeline`."""

    iterations: int
    metrics_path: str
    manifest_path: str
    summary_path: str = ""


__all__ = [
    "ActivationTrace",
    "Array",
    "DEFAULT_DTYPE",
    "DimensionMismatchError",
    "LabeledExample",
    "ModelDescription",
    "RunResult",
    "float_copy",
]
