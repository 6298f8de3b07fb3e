import math

import numpy as np
import pytest

from nnscratch.core.activations import (
    Activation,
    sigmoid,
    sigmoid_derivative,
    softmax,
    softmax_jvp,
)
from nnscratch.core.costs import LOG_EPSILON, REGISTRY
from nnscratch.core.types import DimensionMismatchError


def test_softmax_is_a_probability_vector():
    rng = np.random.default_rng(0)
    for _ in range(20):
        v = rng.normal(0.0, 10.0, size=rng.integers(1, 12))
        p = softmax(v)
        assert abs(p.sum() - 1.0) < 1e-5
        assert np.all(p > 0.0) and np.all(p <= 1.0)


def test_softmax_is_shift_stable():
    p = softmax(np.array([1000.0, 1001.0, 1002.0]))
    q = softmax(np.array([0.0, 1.0, 2.0]))
    assert np.all(np.isfinite(p))
    assert np.allclose(p, q)


def test_sigmoid_derivative_matches_central_difference():
    h = 1e-3
    for x in np.linspace(-6.0, 6.0, 25):
        numeric = (sigmoid(x + h) - sigmoid(x - h)) / (2 * h)
        assert abs(sigmoid_derivative(x) - numeric) < 1e-3
        closed_form = math.exp(x) / (math.exp(x) + 1.0) ** 2
        assert sigmoid_derivative(x) == pytest.approx(closed_form, rel=1e-9)


def test_sigmoid_saturates_without_overflow_warning():
    with np.errstate(over="raise"):
        out = sigmoid(np.array([-1000.0, 0.0, 1000.0]))
    assert np.allclose(out, [0.0, 0.5, 1.0])


def test_softmax_jvp_matches_explicit_jacobian():
    p = softmax(np.array([0.3, -1.2, 2.0, 0.1]))
    jacobian = np.diag(p) - np.outer(p, p)
    v = np.array([0.5, -2.0, 1.0, 3.0])
    assert np.allclose(softmax_jvp(p, v), jacobian @ v)
    assert np.allclose(softmax_jvp(p), jacobian @ p)
    with pytest.raises(DimensionMismatchError):
        softmax_jvp(p, np.ones(3))


def test_single_example_cross_entropy():
    ce = REGISTRY.resolve("cross_entropy")
    value = ce(np.array([0.7, 0.3]), np.array([1.0, 0.0]))
    assert abs(value - (-math.log(0.7 + 1e-8))) < 1e-6
    assert LOG_EPSILON == 1e-8


def test_quadratic_cost_and_pairings():
    quad = REGISTRY.resolve("quadratic")
    assert quad(np.array([1.0, 0.5]), np.array([0.0, 0.5])) == pytest.approx(0.5)
    assert quad.output_activation is Activation.SIGMOID
    assert REGISTRY.resolve("ce").output_activation is Activation.SOFTMAX
    with pytest.raises(KeyError):
        REGISTRY.resolve("hinge")
    with pytest.raises(DimensionMismatchError):
        quad(np.ones(2), np.ones(3))


def test_activation_parse():
    assert Activation.parse("SIGMOID") is Activation.SIGMOID
    with pytest.raises(ValueError):
        Activation.parse("relu")
