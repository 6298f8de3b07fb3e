"""Per-example cost families and their paired output activations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from .activations import Activation
from .types import Array, DimensionMismatchError

CostFn = Callable[[Array, Array], float]
CostGrad = Callable[[Array, Array], Array]

LOG_EPSILON = 1e-8


@dataclass(frozen=True)
class Cost:
    """A per-example cost with its gradient ``dC/da`` and paired output activation."""

    name: str
    fn: CostFn
    grad: CostGrad
    output_activation: Activation

    def __call__(self, output: Array, label: Array) -> float:
        _check_shapes(output, label)
        return self.fn(output, label)

    def gradient(self, output: Array, label: Array) -> Array:
        _check_shapes(output, label)
        return self.grad(output, label)


class CostRegistry:
    """Central registry for cost functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Cost] = {}
        self._aliases: Dict[str, str] = {}

    def register(
        self,
        name: str,
        fn: CostFn,
        grad: CostGrad,
        *,
        output_activation: Activation,
        aliases: Iterable[str] = (),
    ) -> None:
        self._registry[name] = Cost(name, fn, grad, output_activation)
        for alias in aliases:
            self._aliases[alias] = name

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, name: "str | Cost") -> Cost:
        if isinstance(name, Cost):
            return name
        key = self._aliases.get(name, name)
        if key not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown cost {name!r}. Available costs: {available}")
        return self._registry[key]


def _check_shapes(output: Array, label: Array) -> None:
    if np.shape(output) != np.shape(label):
        raise DimensionMismatchError(
            f"output shape {np.shape(output)} does not match label shape {np.shape(label)}"
        )


def _quadratic(output: Array, label: Array) -> float:
    diff = output - label
    return float(np.sum(diff * diff) / 2.0)


def _quadratic_grad(output: Array, label: Array) -> Array:
    return output - label


def _cross_entropy(output: Array, label: Array) -> float:
    return float(-np.sum(label * np.log(output + LOG_EPSILON)))


def _cross_entropy_grad(output: Array, label: Array) -> Array:
    return -label / (output + LOG_EPSILON)


REGISTRY = CostRegistry()
REGISTRY.register(
    "quadratic",
    _quadratic,
    _quadratic_grad,
    output_activation=Activation.SIGMOID,
    aliases=("mse",),
)
REGISTRY.register(
    "cross_entropy",
    _cross_entropy,
    _cross_entropy_grad,
    output_activation=Activation.SOFTMAX,
    aliases=("ce",),
)

__all__ = ["Cost", "CostRegistry", "LOG_EPSILON", "REGISTRY"]
