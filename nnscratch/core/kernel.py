"""Dense linear-algebra primitives used by the forward and backward passes.

Every function returns a freshly allocated array and leaves its arguments
untouched.
"""

from __future__ import annotations

import numpy as np

from .types import Array, DimensionMismatchError


def _require_vector(x: Array, name: str) -> Array:
    x = np.asarray(x)
    if x.ndim != 1:
        raise DimensionMismatchError(f"{name} must be a vector, got shape {x.shape}")
    return x


def _require_matrix(m: Array, name: str) -> Array:
    m = np.asarray(m)
    if m.ndim != 2:
        raise DimensionMismatchError(f"{name} must be a matrix, got shape {m.shape}")
    return m


def dot(a: Array, b: Array) -> float:
    """Return the sum of the element-wise products of ``a`` and ``b``."""

    a = _require_vector(a, "a")
    b = _require_vector(b, "b")
    if a.shape[0] != b.shape[0]:
        raise DimensionMismatchError(f"dot: len(a)={a.shape[0]} != len(b)={b.shape[0]}")
    return float(np.dot(a, b))


def mat_vec_mul(matrix: Array, vector: Array) -> Array:
    """Return ``matrix @ vector``; the matrix must have ``len(vector)`` columns."""

    matrix = _require_matrix(matrix, "matrix")
    vector = _require_vector(vector, "vector")
    if matrix.shape[1] != vector.shape[0]:
        raise DimensionMismatchError(
            f"mat_vec_mul: matrix has {matrix.shape[1]} columns but vector has "
            f"{vector.shape[0]} entries"
        )
    return matrix @ vector


def transpose(matrix: Array) -> Array:
    matrix = _require_matrix(matrix, "matrix")
    return matrix.T.copy()


def outer(x: Array, y: Array) -> Array:
    """Return the matrix ``out[i, j] = x[i] * y[j]``."""

    x = _require_vector(x, "x")
    y = _require_vector(y, "y")
    return np.outer(x, y)


def hadamard(x: Array, y: Array) -> Array:
    x = np.asarray(x)
    y = np.asarray(y)
    if x.shape != y.shape:
        raise DimensionMismatchError(f"hadamard: shapes {x.shape} and {y.shape} differ")
    return np.multiply(x, y)


__all__ = ["dot", "hadamard", "mat_vec_mul", "outer", "transpose"]
