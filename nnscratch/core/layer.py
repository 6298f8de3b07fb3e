"""Fully-connected layer with a configurable activation and init policy."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from . import activations
from .activations import Activation
from .kernel import mat_vec_mul
from .types import DEFAULT_DTYPE, Array, DimensionMismatchError, float_copy

_BIAS_POLICIES = {"random", "zero"}


@dataclass(frozen=True)
class InitPolicy:
    """Uniform weight initialisation in ``[low, high)``.

    ``bias`` is ``"random"`` (biases drawn from the same range) or ``"zero"``.
    """

    low: float = -1.0
    high: float = 1.0
    bias: str = "zero"

    def __post_init__(self) -> None:
        if not self.low < self.high:
            raise ValueError(f"InitPolicy requires low < high, got [{self.low}, {self.high})")
        if self.bias not in _BIAS_POLICIES:
            raise ValueError(f"InitPolicy.bias must be one of {sorted(_BIAS_POLICIES)}")

    @classmethod
    def named(cls, name: str) -> "InitPolicy":
        if name == "unit":
            return cls(low=0.0, high=1.0, bias="random")
        if name == "symmetric":
            return cls()
        raise KeyError(f"Unknown init policy: {name}")

    @classmethod
    def from_config(cls, config: "str | dict | InitPolicy | None") -> "InitPolicy":
        if config is None:
            return cls()
        if isinstance(config, InitPolicy):
            return config
        if isinstance(config, str):
            return cls.named(config)
        return cls(
            low=float(config.get("low", -1.0)),
            high=float(config.get("high", 1.0)),
            bias=str(config.get("bias", "zero")),
        )


@dataclass(eq=False)
class Layer:
    """One fully-connected transformation ``activation(W @ x + b)``."""

    weights: Array
    biases: Array
    activation: Activation = Activation.SIGMOID

    def __post_init__(self) -> None:
        self.weights = float_copy(self.weights)
        self.biases = np.array(self.biases, dtype=self.weights.dtype)
        self.activation = Activation.parse(self.activation)
        if self.weights.ndim != 2 or self.biases.ndim != 1:
            raise DimensionMismatchError(
                f"weights must be 2-D and biases 1-D, got {self.weights.shape} "
                f"and {self.biases.shape}"
            )
        if self.weights.shape[0] != self.biases.shape[0]:
            raise DimensionMismatchError(
                f"weights have {self.weights.shape[0]} rows but there are "
                f"{self.biases.shape[0]} biases"
            )
        if min(self.weights.shape) <= 0:
            raise ValueError(f"Layer widths must be positive, got {self.weights.shape}")

    @classmethod
    def create(
        cls,
        output_width: int,
        input_width: int,
        *,
        activation: "Activation | str" = Activation.SIGMOID,
        rng: np.random.Generator | None = None,
        init: InitPolicy | None = None,
        dtype=DEFAULT_DTYPE,
    ) -> "Layer":
        if output_width <= 0 or input_width <= 0:
            raise ValueError(
                f"Layer widths must be positive, got ({output_width}, {input_width})"
            )
        rng = rng if rng is not None else np.random.default_rng()
        init = init or InitPolicy()
        weights = rng.uniform(init.low, init.high, size=(output_width, input_width))
        if init.bias == "random":
            biases = rng.uniform(init.low, init.high, size=output_width)
        else:
            biases = np.zeros(output_width)
        return cls(
            weights=weights.astype(dtype),
            biases=biases.astype(dtype),
            activation=activation,
        )

    @property
    def input_width(self) -> int:
        return int(self.weights.shape[1])

    @property
    def output_width(self) -> int:
        return int(self.weights.shape[0])

    def weighted_input(self, x: Array) -> Array:
        return mat_vec_mul(self.weights, x) + self.biases

    def activate(self, x: Array) -> Array:
        return activations.apply(self.activation, self.weighted_input(x))

    def activation_derivative(self, z: Array) -> Array:
        """Element-wise derivative of the activation at ``z`` (hidden layers)."""

        if self.activation is not Activation.SIGMOID:
            raise ValueError(
                f"{self.activation.value} has no element-wise derivative; "
                "it is only supported on the output layer"
            )
        return activations.sigmoid_derivative(z)

    def total_parameter_count(self) -> int:
        return int(self.weights.size + self.biases.size)


__all__ = ["InitPolicy", "Layer"]
