import math

import numpy as np
import pytest

from nnscratch.core.layer import Layer
from nnscratch.core.network import Network
from nnscratch.core.types import DimensionMismatchError, LabeledExample


def _sig(x):
    return 1.0 / (1.0 + math.exp(-x))


def _example(label, features, dtype=np.float32):
    return LabeledExample(label=label, features=features, dtype=dtype)


def _fixed_222():
    hidden = Layer(weights=np.array([[0.5, -0.5], [0.25, 0.75]]), biases=np.zeros(2))
    output = Layer(weights=np.array([[1.0, -1.0], [0.5, 0.5]]), biases=np.array([0.1, -0.2]))
    return Network(layers=[hidden, output], cost_fn="quadratic")


def _random_dataset(rng, n, width, classes, dtype=np.float64):
    return [
        _example(np.eye(classes)[rng.integers(classes)], rng.normal(size=width), dtype)
        for _ in range(n)
    ]


def test_forward_matches_hand_computation():
    net = _fixed_222()
    h0, h1 = _sig(0.5), _sig(0.25)
    expected = [_sig(h0 - h1 + 0.1), _sig(0.5 * h0 + 0.5 * h1 - 0.2)]
    out = net.forward(np.array([1.0, 0.0]))
    assert out.shape == (2,)
    assert np.allclose(out, expected, atol=1e-6)


def test_forward_matches_hand_computation_with_zero_biases():
    hidden = Layer(weights=np.array([[0.5, -0.5], [0.25, 0.75]]), biases=np.zeros(2))
    output = Layer(weights=np.array([[1.0, -1.0], [0.5, 0.5]]), biases=np.zeros(2))
    net = Network(layers=[hidden, output], cost_fn="quadratic")
    h0, h1 = _sig(0.5), _sig(0.25)
    expected = [_sig(h0 - h1), _sig(0.5 * h0 + 0.5 * h1)]
    assert np.allclose(net.forward(np.array([1.0, 0.0])), expected, atol=1e-6)


def test_forward_with_trace_records_every_layer():
    net = _fixed_222()
    trace = net.forward_with_trace(np.array([1.0, 0.0]))
    assert len(trace.weighted_inputs) == 2
    assert len(trace.activations) == 3
    assert np.allclose(trace.weighted_inputs[0], [0.5, 0.25])
    assert np.allclose(trace.output, net.forward(np.array([1.0, 0.0])))


def test_cross_entropy_cost_of_single_example():
    # log-weights make the softmax output exactly [0.7, 0.3]
    layer = Layer(
        weights=np.array([[math.log(0.7)], [math.log(0.3)]]),
        biases=np.zeros(2),
        activation="softmax",
    )
    net = Network(layers=[layer], cost_fn="cross_entropy")
    data = [_example([1.0, 0.0], [1.0], np.float64)]
    assert np.allclose(net.forward(data[0].features), [0.7, 0.3])
    assert abs(net.cost(data) - (-math.log(0.7 + 1e-8))) < 1e-6


def test_classification_accuracy_counts_argmax_hits():
    identity = Layer(weights=np.eye(2), biases=np.zeros(2))
    net = Network(layers=[identity], cost_fn="quadratic")
    data = [
        _example([1, 0], [1.0, 0.0]),
        _example([0, 1], [0.0, 1.0]),
        _example([1, 0], [2.0, 1.0]),
        _example([1, 0], [0.0, 3.0]),
    ]
    assert net.classification_accuracy(data) == pytest.approx(0.75)
    # ties resolve to the first index
    assert net.classification_accuracy([_example([1, 0], [1.0, 1.0])]) == 1.0


@pytest.mark.parametrize(
    "cost,l2",
    [("quadratic", 0.0), ("cross_entropy", 0.0), ("cross_entropy", 0.01), ("quadratic", 0.05)],
)
def test_gradient_matches_finite_differences(cost, l2):
    rng = np.random.default_rng(11)
    net = Network.build([3, 4, 3], cost=cost, seed=2, l2=l2, dtype=np.float64)
    data = _random_dataset(rng, 5, 3, 3)
    delta = net.total_negative_gradient(data)
    h = 1e-5

    for idx, layer in enumerate(net.layers):
        for params, grads in ((layer.weights, delta.weight_grads[idx]), (layer.biases, delta.bias_grads[idx])):
            for pos in np.ndindex(params.shape):
                original = params[pos]
                params[pos] = original + h
                up = net.cost(data)
                params[pos] = original - h
                down = net.cost(data)
                params[pos] = original
                numeric = (up - down) / (2 * h)
                assert -grads[pos] == pytest.approx(numeric, rel=1e-4, abs=1e-7)


def test_backward_leaves_parameters_untouched():
    net = Network.build([3, 4, 2], seed=0)
    before = [layer.weights.copy() for layer in net.layers]
    net.backward(_example([0, 1], [0.1, 0.2, 0.3]))
    for layer, weights in zip(net.layers, before):
        assert np.array_equal(layer.weights, weights)


def test_apply_delta_adds_exactly():
    net = Network.build([3, 4, 2], seed=0)
    delta = net.backward(_example([0, 1], [0.1, -0.2, 0.3]))
    weights = [layer.weights.copy() for layer in net.layers]
    biases = [layer.biases.copy() for layer in net.layers]
    net.apply_delta(delta)
    for idx, layer in enumerate(net.layers):
        assert np.array_equal(layer.weights, weights[idx] + delta.weight_grads[idx])
        assert np.array_equal(layer.biases, biases[idx] + delta.bias_grads[idx])


def test_apply_delta_rejects_mismatched_shapes_without_writing():
    net = Network.build([3, 4, 2], seed=0)
    other = Network.build([3, 4, 3], seed=0)
    delta = other.backward(_example([0, 0, 1], [0.1, 0.2, 0.3]))
    before = [layer.weights.copy() for layer in net.layers]
    with pytest.raises(DimensionMismatchError):
        net.apply_delta(delta)
    for layer, weights in zip(net.layers, before):
        assert np.array_equal(layer.weights, weights)


def test_parallel_gradient_matches_serial():
    rng = np.random.default_rng(3)
    net = Network.build([4, 6, 3], seed=1, dtype=np.float64)
    data = _random_dataset(rng, 23, 4, 3)
    serial = net.total_negative_gradient(data)
    parallel = net.total_negative_gradient(data, workers=4)
    for a, b in zip(serial.weight_grads + serial.bias_grads, parallel.weight_grads + parallel.bias_grads):
        assert np.allclose(a, b, rtol=1e-10, atol=1e-12)


def test_dimension_and_structure_errors():
    net = Network.build([3, 2], seed=0)
    with pytest.raises(DimensionMismatchError):
        net.forward(np.ones(4))
    with pytest.raises(ValueError):
        net.cost([])
    with pytest.raises(ValueError):
        net.total_negative_gradient([])
    with pytest.raises(DimensionMismatchError):
        Network(layers=[Layer.create(4, 3), Layer.create(2, 5)])
    with pytest.raises(ValueError):
        Network(layers=[Layer.create(4, 3, activation="softmax"), Layer.create(2, 4)])
    with pytest.raises(ValueError):
        Network.build([3])
    with pytest.raises(ValueError):
        Network.build([3, 2], l2=-1.0)


def test_build_pairs_output_activation_with_cost():
    assert Network.build([2, 3, 2], cost="quadratic").describe().activations == ["sigmoid", "sigmoid"]
    described = Network.build([2, 3, 2], cost="cross_entropy").describe()
    assert described.activations == ["sigmoid", "softmax"]
    assert described.layer_sizes == [2, 3, 2]
    assert Network.build([2, 3, 2]).parameter_count() == 3 * 2 + 3 + 2 * 3 + 2


def test_l2_penalty_is_added_to_cost():
    data = [_example([1, 0], [0.5, -0.5], np.float64)]
    plain = Network.build([2, 2], seed=4, dtype=np.float64)
    decayed = Network.build([2, 2], seed=4, l2=0.1, dtype=np.float64)
    penalty = 0.1 * float(np.sum(decayed.layers[0].weights ** 2))
    assert decayed.cost(data) == pytest.approx(plain.cost(data) + penalty)
