"""Training driver and pipeline assembly."""

from .pipelines import load_preset, presets, run_pipeline
from .trainer import DivergenceError, SGDOptimizer, Trainer, TrainResult

__all__ = [
    "DivergenceError",
    "SGDOptimizer",
    "TrainResult",
    "Trainer",
    "load_preset",
    "presets",
    "run_pipeline",
]
