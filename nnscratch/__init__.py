"""nnscratch public API."""

from .core import activations, costs, kernel, types  # noqa: F401
from .core.delta import Delta
from .core.layer import InitPolicy, Layer
from .core.network import Network
from .core.types import DimensionMismatchError, LabeledExample
from .data import get_dataset
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import DivergenceError, SGDOptimizer, Trainer

__all__ = [
    "Delta",
    "DimensionMismatchError",
    "DivergenceError",
    "InitPolicy",
    "LabeledExample",
    "Layer",
    "Network",
    "SGDOptimizer",
    "Trainer",
    "activations",
    "costs",
    "get_dataset",
    "kernel",
    "load_preset",
    "presets",
    "run_pipeline",
    "types",
]
