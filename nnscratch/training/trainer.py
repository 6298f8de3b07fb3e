"""Gradient-descent driver for :class:`~nnscratch.core.network.Network`."""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Sequence

import numpy as np

from ..core.delta import Delta
from ..core.network import Network
from ..core.types import LabeledExample

DIVERGENCE_POLICIES = {"halt", "skip", "reduce_lr"}


class DivergenceError(RuntimeError):
    """Raised when a batch gradient contains NaN or infinity under ``"halt"``."""


@dataclass
class SGDOptimizer:
    """Plain gradient descent with ``lr / (1 + decay * iteration)`` scheduling."""

    lr: float
    decay: float = 0.0

    def __post_init__(self) -> None:
        if self.lr <= 0:
            raise ValueError(f"lr must be positive, got {self.lr}")
        if self.decay < 0:
            raise ValueError(f"decay must be non-negative, got {self.decay}")

    def learning_rate(self, iteration: int) -> float:
        return self.lr / (1.0 + self.decay * iteration)

    def step(self, network: Network, delta: Delta, iteration: int = 0) -> None:
        network.apply_delta(delta.copy().scale(self.learning_rate(iteration)))


@dataclass(frozen=True)
class TrainResult:
    iterations: int
    skipped: int
    final_metrics: Mapping[str, Mapping[str, float]] = field(default_factory=dict)


def _batches(
    dataset: Sequence[LabeledExample], batch_size: int | None, rng: np.random.Generator
) -> Iterator[Sequence[LabeledExample]]:
    if batch_size is None or batch_size >= len(dataset):
        while True:
            yield dataset
    while True:
        order = rng.permutation(len(dataset))
        for start in range(0, len(order), batch_size):
            yield [dataset[i] for i in order[start : start + batch_size]]


class Trainer:
    """Alternate a compute phase and an apply phase for a fixed iteration count.

    The network's parameters are only written after the batch gradient has
    been fully reduced, so every gradient sees one consistent parameter set.
    """

    def __init__(
        self,
        network: Network,
        optimizer: SGDOptimizer,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.network = network
        self.optimizer = optimizer
        self.callbacks = list(callbacks or [])

    def run(
        self,
        train: Sequence[LabeledExample],
        *,
        iterations: int,
        seed: int = 0,
        batch_size: int | None = None,
        test: Sequence[LabeledExample] | None = None,
        eval_every: int = 1,
        eval_limit: int | None = None,
        clip_norm: float | None = None,
        on_divergence: str = "halt",
        workers: int = 1,
        split_loggers: Mapping[str, Sequence[object]] | None = None,
    ) -> TrainResult:
        if not train:
            raise ValueError("train dataset is empty")
        if iterations <= 0:
            raise ValueError(f"iterations must be positive, got {iterations}")
        if batch_size is not None and batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if on_divergence not in DIVERGENCE_POLICIES:
            raise ValueError(f"on_divergence must be one of {sorted(DIVERGENCE_POLICIES)}")
        if clip_norm is not None and clip_norm <= 0:
            raise ValueError(f"clip_norm must be positive, got {clip_norm}")

        rng = np.random.default_rng(seed)
        batches = _batches(train, batch_size, rng)
        eval_train = train[:eval_limit] if eval_limit else train
        split_loggers = split_loggers or {}
        eval_every = max(1, int(eval_every))
        skipped = 0
        final: Dict[str, Mapping[str, float]] = {}

        for iteration in range(1, iterations + 1):
            delta = self.network.total_negative_gradient(next(batches), workers=workers)
            grad_norm = math.sqrt(delta.squared_magnitude())
            lr = self.optimizer.learning_rate(iteration - 1)

            if not delta.is_finite():
                self._handle_divergence(iteration, on_divergence)
                skipped += 1
            else:
                if clip_norm is not None and grad_norm > clip_norm:
                    delta.scale(clip_norm / grad_norm)
                self.optimizer.step(self.network, delta, iteration - 1)

            if iteration % eval_every == 0 or iteration == iterations:
                final["train"] = self._evaluate(eval_train)
                final["train"].update({"grad_norm": grad_norm, "lr": lr})
                self._emit("train", iteration, final["train"], split_loggers)
                if test:
                    final["test"] = self._evaluate(test)
                    self._emit("test", iteration, final["test"], split_loggers)

        return TrainResult(iterations=iterations, skipped=skipped, final_metrics=final)

    # ------------------------------------------------------------------
    # Internal helpers

    def _evaluate(self, dataset: Sequence[LabeledExample]) -> Dict[str, float]:
        with np.errstate(over="ignore", invalid="ignore"):
            return {
                "loss": float(self.network.cost(dataset)),
                "accuracy": float(self.network.classification_accuracy(dataset)),
            }

    def _handle_divergence(self, iteration: int, policy: str) -> None:
        if policy == "halt":
            raise DivergenceError(f"Non-finite gradient at iteration {iteration}")
        if policy == "reduce_lr":
            self.optimizer.lr *= 0.5
            warnings.warn(
                f"Non-finite gradient at iteration {iteration}; learning rate reduced "
                f"to {self.optimizer.lr:g}",
                RuntimeWarning,
                stacklevel=3,
            )
        else:
            warnings.warn(
                f"Non-finite gradient at iteration {iteration}; update skipped",
                RuntimeWarning,
                stacklevel=3,
            )

    def _emit(
        self,
        split: str,
        iteration: int,
        metrics: Mapping[str, float],
        loggers: Mapping[str, Sequence[object]],
    ) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(iteration, metrics)  # type: ignore[attr-defined]
        targets: List[object] = list(loggers.get(split, []))
        for callback in targets:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(iteration, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(iteration, metrics)


__all__ = ["DivergenceError", "SGDOptimizer", "TrainResult", "Trainer"]
