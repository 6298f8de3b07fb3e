import numpy as np
import pytest

from nnscratch.core.kernel import dot, hadamard, mat_vec_mul, outer, transpose
from nnscratch.core.types import DimensionMismatchError


def test_dot_and_mat_vec_mul():
    a = np.array([1.0, 2.0, 3.0])
    b = np.array([4.0, -5.0, 6.0])
    assert dot(a, b) == pytest.approx(12.0)

    m = np.array([[1.0, 0.0, 2.0], [0.0, 1.0, -1.0]])
    assert np.allclose(mat_vec_mul(m, a), [7.0, -1.0])


@pytest.mark.parametrize(
    "call",
    [
        lambda: dot(np.ones(3), np.ones(4)),
        lambda: mat_vec_mul(np.ones((2, 3)), np.ones(2)),
        lambda: hadamard(np.ones(3), np.ones(2)),
        lambda: mat_vec_mul(np.ones(3), np.ones(3)),
        lambda: outer(np.ones((2, 2)), np.ones(2)),
    ],
)
def test_shape_violations_raise(call):
    with pytest.raises(DimensionMismatchError):
        call()


def test_transpose_does_not_alias_input():
    m = np.arange(6, dtype=np.float32).reshape(2, 3)
    t = transpose(m)
    assert t.shape == (3, 2)
    assert not np.shares_memory(m, t)
    t[0, 0] = 99.0
    assert m[0, 0] == 0.0


def test_outer_and_hadamard_leave_inputs_untouched():
    x = np.array([1.0, 2.0])
    y = np.array([3.0, 4.0, 5.0])
    out = outer(x, y)
    assert out.shape == (2, 3)
    assert out[1, 2] == pytest.approx(10.0)

    h = hadamard(x, np.array([2.0, 0.5]))
    assert np.allclose(h, [2.0, 1.0])
    h[0] = -1.0
    assert np.allclose(x, [1.0, 2.0])
