"""Multilayer perceptron: forward propagation, cost and backpropagation."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np

from . import activations
from .activations import Activation
from .costs import REGISTRY as COST_REGISTRY
from .costs import Cost
from .delta import Delta
from .kernel import hadamard, mat_vec_mul, outer, transpose
from .layer import InitPolicy, Layer
from .types import (
    DEFAULT_DTYPE,
    ActivationTrace,
    Array,
    DimensionMismatchError,
    LabeledExample,
    ModelDescription,
)


@dataclass(eq=False)
class Network:
    """An ordered stack of :class:`Layer` objects trained with a single cost.

    The network holds parameters only. Intermediate values of a forward pass
    are returned to the caller, and parameters change exclusively through
    :meth:`apply_delta`.
    """

    layers: List[Layer]
    cost_fn: Cost = field(default_factory=lambda: COST_REGISTRY.resolve("cross_entropy"))
    l2: float = 0.0

    def __post_init__(self) -> None:
        self.layers = list(self.layers)
        self.cost_fn = COST_REGISTRY.resolve(self.cost_fn)
        if not self.layers:
            raise ValueError("Network requires at least one layer")
        if self.l2 < 0:
            raise ValueError(f"l2 must be non-negative, got {self.l2}")
        for idx in range(1, len(self.layers)):
            prev, layer = self.layers[idx - 1], self.layers[idx]
            if layer.input_width != prev.output_width:
                raise DimensionMismatchError(
                    f"layer {idx} expects {layer.input_width} inputs but layer "
                    f"{idx - 1} produces {prev.output_width}"
                )
        for idx, layer in enumerate(self.layers[:-1]):
            if layer.activation is not Activation.SIGMOID:
                raise ValueError(
                    f"hidden layer {idx} uses {layer.activation.value}; only the output "
                    "layer may use softmax"
                )

    @classmethod
    def build(
        cls,
        layer_sizes: Sequence[int],
        *,
        cost: "str | Cost" = "cross_entropy",
        output_activation: "Activation | str | None" = None,
        init: InitPolicy | None = None,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
        l2: float = 0.0,
        dtype=DEFAULT_DTYPE,
    ) -> "Network":
        """Create a randomly initialised network.

        ``layer_sizes`` lists the input width, every hidden width and the
        number of classes. Hidden layers use sigmoid; the output layer uses
        ``output_activation`` or the activation paired with ``cost``.
        """

        sizes = [int(s) for s in layer_sizes]
        if len(sizes) < 2:
            raise ValueError("layer_sizes needs an input width and at least one layer")
        if any(s <= 0 for s in sizes):
            raise ValueError(f"layer widths must be positive, got {sizes}")
        cost_fn = COST_REGISTRY.resolve(cost)
        out_act = Activation.parse(output_activation or cost_fn.output_activation)
        rng = rng if rng is not None else np.random.default_rng(seed)
        layers = []
        for idx, (in_width, out_width) in enumerate(zip(sizes[:-1], sizes[1:])):
            last = idx == len(sizes) - 2
            layers.append(
                Layer.create(
                    out_width,
                    in_width,
                    activation=out_act if last else Activation.SIGMOID,
                    rng=rng,
                    init=init,
                    dtype=dtype,
                )
            )
        return cls(layers=layers, cost_fn=cost_fn, l2=l2)

    # ------------------------------------------------------------------
    # Shape helpers

    @property
    def input_width(self) -> int:
        return self.layers[0].input_width

    @property
    def output_width(self) -> int:
        return self.layers[-1].output_width

    @property
    def layer_sizes(self) -> List[int]:
        return [self.input_width, *(layer.output_width for layer in self.layers)]

    def parameter_count(self) -> int:
        return sum(layer.total_parameter_count() for layer in self.layers)

    def describe(self) -> ModelDescription:
        return ModelDescription(
            layer_sizes=self.layer_sizes,
            activations=[layer.activation.value for layer in self.layers],
            cost=self.cost_fn.name,
            l2=self.l2,
        )

    # ------------------------------------------------------------------
    # Forward

    def forward(self, x: Array) -> Array:
        self._check_input(x)
        a = np.asarray(x)
        for layer in self.layers:
            a = layer.activate(a)
        return a

    def forward_with_trace(self, x: Array) -> ActivationTrace:
        self._check_input(x)
        a = np.asarray(x)
        weighted_inputs: List[Array] = []
        acts: List[Array] = [a]
        for layer in self.layers:
            z = layer.weighted_input(a)
            a = activations.apply(layer.activation, z)
            weighted_inputs.append(z)
            acts.append(a)
        return ActivationTrace(weighted_inputs=weighted_inputs, activations=acts)

    def cost(self, dataset: Sequence[LabeledExample]) -> float:
        """Mean per-example cost plus the L2 penalty ``l2 * sum(W**2)``."""

        if len(dataset) == 0:
            raise ValueError("cost requires a non-empty dataset")
        total = 0.0
        for example in dataset:
            total += self.cost_fn(self.forward(example.features), example.label)
        return total / len(dataset) + self._l2_penalty()

    def classification_accuracy(self, dataset: Sequence[LabeledExample]) -> float:
        if len(dataset) == 0:
            raise ValueError("classification_accuracy requires a non-empty dataset")
        hits = 0
        for example in dataset:
            prediction = int(np.argmax(self.forward(example.features)))
            hits += prediction == int(np.argmax(example.label))
        return hits / len(dataset)

    # ------------------------------------------------------------------
    # Backward

    def backward(self, example: LabeledExample) -> Delta:
        """Negative cost gradient for a single example."""

        trace = self.forward_with_trace(example.features)
        output = trace.output
        last = len(self.layers) - 1
        upstream = self.cost_fn.gradient(output, example.label)
        error = activations.backprop(
            self.layers[last].activation, trace.weighted_inputs[last], output, upstream
        )

        bias_grads: List[Array] = [None] * len(self.layers)  # type: ignore[list-item]
        weight_grads: List[Array] = [None] * len(self.layers)  # type: ignore[list-item]
        bias_grads[last] = -error
        weight_grads[last] = -outer(error, trace.activations[last])
        for idx in reversed(range(last)):
            back = mat_vec_mul(transpose(self.layers[idx + 1].weights), error)
            error = hadamard(back, self.layers[idx].activation_derivative(trace.weighted_inputs[idx]))
            bias_grads[idx] = -error
            weight_grads[idx] = -outer(error, trace.activations[idx])
        return Delta(bias_grads=bias_grads, weight_grads=weight_grads)

    def total_negative_gradient(
        self, dataset: Sequence[LabeledExample], *, workers: int = 1
    ) -> Delta:
        """Average negative gradient of :meth:`cost` over ``dataset``.

        With ``workers > 1`` contiguous chunks are summed concurrently and the
        partial sums are combined in chunk order.
        """

        n = len(dataset)
        if n == 0:
            raise ValueError("total_negative_gradient requires a non-empty dataset")
        workers = max(1, min(int(workers), n))
        if workers == 1:
            total = self._sum_backward(dataset)
        else:
            bounds = np.linspace(0, n, workers + 1).astype(int)
            chunks = [dataset[lo:hi] for lo, hi in zip(bounds[:-1], bounds[1:])]
            total = Delta.empty()
            with ThreadPoolExecutor(max_workers=workers) as pool:
                for partial in pool.map(self._sum_backward, chunks):
                    total.accumulate(partial)
        total.scale(1.0 / n)
        if self.l2 > 0:
            for grad, layer in zip(total.weight_grads, self.layers):
                grad -= 2.0 * self.l2 * layer.weights
        return total

    def apply_delta(self, delta: Delta) -> None:
        """Add ``delta`` to every layer's parameters in place.

        All shapes are validated before any parameter is written.
        """

        if len(delta) != len(self.layers):
            raise DimensionMismatchError(
                f"Delta has {len(delta)} layers but the network has {len(self.layers)}"
            )
        for idx, layer in enumerate(self.layers):
            if delta.weight_grads[idx].shape != layer.weights.shape:
                raise DimensionMismatchError(
                    f"layer {idx}: weight delta {delta.weight_grads[idx].shape} != "
                    f"{layer.weights.shape}"
                )
            if delta.bias_grads[idx].shape != layer.biases.shape:
                raise DimensionMismatchError(
                    f"layer {idx}: bias delta {delta.bias_grads[idx].shape} != "
                    f"{layer.biases.shape}"
                )
        for layer, d_w, d_b in zip(self.layers, delta.weight_grads, delta.bias_grads):
            layer.weights += d_w
            layer.biases += d_b

    # ------------------------------------------------------------------
    # Internal helpers

    def _sum_backward(self, examples: Sequence[LabeledExample]) -> Delta:
        total = Delta.empty()
        for example in examples:
            total.accumulate(self.backward(example))
        return total

    def _l2_penalty(self) -> float:
        if self.l2 <= 0:
            return 0.0
        return self.l2 * float(
            sum(np.sum(np.square(layer.weights, dtype=np.float64)) for layer in self.layers)
        )

    def _check_input(self, x: Array) -> None:
        shape = np.shape(x)
        if len(shape) != 1 or shape[0] != self.input_width:
            raise DimensionMismatchError(
                f"expected an input vector of length {self.input_width}, got shape {shape}"
            )


__all__ = ["Network"]
