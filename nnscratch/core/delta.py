"""Per-layer gradient accumulator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List

import numpy as np

from .types import Array, DimensionMismatchError, float_copy

if TYPE_CHECKING:  # pragma: no cover
    from .network import Network


@dataclass(eq=False)
class Delta:
    """Weight and bias gradients for every layer of a network.

    Entries are *negative* gradients of the cost, so a Delta improves the
    model when added to its parameters. An empty Delta is the identity for
    :meth:`accumulate` and takes the shape of the first Delta added to it.
    """

    bias_grads: List[Array] = field(default_factory=list)
    weight_grads: List[Array] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.bias_grads = [float_copy(g) for g in self.bias_grads]
        self.weight_grads = [float_copy(g) for g in self.weight_grads]
        if len(self.bias_grads) != len(self.weight_grads):
            raise DimensionMismatchError(
                f"{len(self.bias_grads)} bias buffers but {len(self.weight_grads)} weight buffers"
            )

    @classmethod
    def empty(cls) -> "Delta":
        return cls()

    @classmethod
    def zeros_like(cls, network: "Network") -> "Delta":
        return cls(
            bias_grads=[np.zeros_like(layer.biases) for layer in network.layers],
            weight_grads=[np.zeros_like(layer.weights) for layer in network.layers],
        )

    @property
    def is_empty(self) -> bool:
        return not self.weight_grads

    def __len__(self) -> int:
        return len(self.weight_grads)

    def copy(self) -> "Delta":
        return Delta(bias_grads=self.bias_grads, weight_grads=self.weight_grads)

    def accumulate(self, other: "Delta") -> "Delta":
        """Add ``other`` into this Delta element-wise and return ``self``."""

        if other.is_empty:
            return self
        if self.is_empty:
            copied = other.copy()
            self.bias_grads = copied.bias_grads
            self.weight_grads = copied.weight_grads
            return self
        self._check_compatible(other)
        for own, theirs in zip(self.bias_grads, other.bias_grads):
            own += theirs
        for own, theirs in zip(self.weight_grads, other.weight_grads):
            own += theirs
        return self

    def scale(self, factor: float) -> "Delta":
        for grad in self.bias_grads:
            grad *= factor
        for grad in self.weight_grads:
            grad *= factor
        return self

    def is_nan(self) -> bool:
        return any(bool(np.isnan(g).any()) for g in self._buffers())

    def is_finite(self) -> bool:
        return all(bool(np.isfinite(g).all()) for g in self._buffers())

    def squared_magnitude(self) -> float:
        return float(sum(np.sum(np.square(g, dtype=np.float64)) for g in self._buffers()))

    def __add__(self, other: "Delta") -> "Delta":
        return self.copy().accumulate(other)

    def _buffers(self) -> List[Array]:
        return [*self.bias_grads, *self.weight_grads]

    def _check_compatible(self, other: "Delta") -> None:
        if len(self) != len(other):
            raise DimensionMismatchError(f"Delta has {len(self)} layers, other has {len(other)}")
        for idx, (own, theirs) in enumerate(zip(self.weight_grads, other.weight_grads)):
            if own.shape != theirs.shape:
                raise DimensionMismatchError(
                    f"weight gradient {idx}: {own.shape} != {theirs.shape}"
                )
        for idx, (own, theirs) in enumerate(zip(self.bias_grads, other.bias_grads)):
            if own.shape != theirs.shape:
                raise DimensionMismatchError(
                    f"bias gradient {idx}: {own.shape} != {theirs.shape}"
                )


__all__ = ["Delta"]
