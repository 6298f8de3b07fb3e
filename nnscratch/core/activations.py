"""Activation utilities for nnscratch."""

from __future__ import annotations

from enum import Enum

import numpy as np

from .kernel import hadamard
from .types import Array, DimensionMismatchError


class Activation(str, Enum):
    """Non-linearity applied by a :class:`~nnscratch.core.layer.Layer`."""

    SIGMOID = "sigmoid"
    SOFTMAX = "softmax"

    @classmethod
    def parse(cls, value: "Activation | str") -> "Activation":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as exc:
            choices = ", ".join(a.value for a in cls)
            raise ValueError(f"Unknown activation {value!r}. Available: {choices}") from exc


def sigmoid(x: Array) -> Array:
    """Return the logistic function applied element-wise."""

    x = np.asarray(x)
    # exp(-x) overflows to inf for very negative x, which still yields 0.
    with np.errstate(over="ignore"):
        return 1.0 / (1.0 + np.exp(-x))


def sigmoid_derivative(x: Array) -> Array:
    s = sigmoid(x)
    return s * (1.0 - s)


def softmax(v: Array) -> Array:
    """Numerically stable softmax along the last axis."""

    v = np.asarray(v)
    shifted = v - np.max(v, axis=-1, keepdims=True)
    e = np.exp(shifted)
    return e / np.sum(e, axis=-1, keepdims=True)


def softmax_jvp(probs: Array, vector: Array | None = None) -> Array:
    """Multiply the softmax Jacobian at ``probs`` by ``vector``.

    ``J[i, j] = p[i] * (delta_ij - p[j])``. The Jacobian is symmetric, so the
    result doubles as the vector-Jacobian product needed by backpropagation.
    When ``vector`` is omitted the Jacobian is applied to ``probs`` itself.
    This is not an element-wise derivative.
    """

    probs = np.asarray(probs)
    vector = probs if vector is None else np.asarray(vector)
    if probs.shape != vector.shape:
        raise DimensionMismatchError(
            f"softmax_jvp: probs {probs.shape} and vector {vector.shape} differ"
        )
    weighted = np.sum(probs * vector, axis=-1, keepdims=True)
    return probs * (vector - weighted)


def apply(activation: Activation, z: Array) -> Array:
    if activation is Activation.SIGMOID:
        return sigmoid(z)
    if activation is Activation.SOFTMAX:
        return softmax(z)
    raise ValueError(f"Unknown activation: {activation}")  # pragma: no cover - guardrail


def backprop(activation: Activation, z: Array, a: Array, upstream: Array) -> Array:
    """Return ``dC/dz`` given ``upstream = dC/da`` for one layer."""

    if activation is Activation.SIGMOID:
        return hadamard(upstream, sigmoid_derivative(z))
    if activation is Activation.SOFTMAX:
        return softmax_jvp(a, upstream)
    raise ValueError(f"Unknown activation: {activation}")  # pragma: no cover - guardrail


__all__ = [
    "Activation",
    "apply",
    "backprop",
    "sigmoid",
    "sigmoid_derivative",
    "softmax",
    "softmax_jvp",
]
