import numpy as np
import pytest
import torch

from lsqtrust.optimize import (
    autograd_jacobian,
    central_jacobian,
    forward_jacobian,
    torch_residual,
)


def _fun(x: np.ndarray) -> np.ndarray:
    return np.array([x[0] ** 2 + x[1], np.sin(x[0]) * x[1], np.exp(x[1])])


def _jac(x: np.ndarray) -> np.ndarray:
    return np.array(
        [
            [2.0 * x[0], 1.0],
            [np.cos(x[0]) * x[1], np.sin(x[0])],
            [0.0, np.exp(x[1])],
        ]
    )


def _torch_rosenbrock(x: torch.Tensor) -> torch.Tensor:
    return torch.stack([10.0 * (x[1] - x[0] ** 2), 1.0 - x[0]])


def test_forward_difference_close_to_analytic():
    x = np.array([0.7, -1.3])
    assert np.allclose(forward_jacobian(_fun, x), _jac(x), atol=1e-6)


def test_central_difference_close_to_analytic():
    x = np.array([0.7, -1.3])
    assert np.allclose(central_jacobian(_fun, x), _jac(x), atol=1e-6)


def test_difference_at_zero_uses_absolute_step():
    A = np.array([[1.0, 2.0], [3.0, -1.0], [0.5, 0.0]])
    x = np.zeros(2)
    assert np.allclose(forward_jacobian(lambda v: A @ v, x), A, atol=1e-7)
    assert np.allclose(central_jacobian(lambda v: A @ v, x), A, atol=1e-7)


def test_evaluation_counts():
    x = np.array([0.7, -1.3])
    _, evals = forward_jacobian(_fun, x, f=_fun(x), return_evals=True)
    assert evals == 2
    _, evals = forward_jacobian(_fun, x, return_evals=True)
    assert evals == 3
    _, evals = central_jacobian(_fun, x, return_evals=True)
    assert evals == 4


def test_input_point_left_unchanged():
    x = np.array([0.7, -1.3])
    forward_jacobian(_fun, x)
    central_jacobian(_fun, x)
    assert np.array_equal(x, [0.7, -1.3])


@pytest.mark.parametrize("func", [forward_jacobian, central_jacobian])
def test_non_positive_step_rejected(func):
    with pytest.raises(ValueError):
        func(_fun, np.ones(2), h=0.0)


def test_autograd_jacobian_is_exact(rosenbrock):
    _, rosenbrock_jac = rosenbrock
    x = np.array([-1.2, 1.0])
    assert np.allclose(autograd_jacobian(_torch_rosenbrock, x), rosenbrock_jac(x))


def test_autograd_requires_vector_output():
    with pytest.raises(ValueError):
        autograd_jacobian(lambda t: (t**2).sum(), np.ones(2))


def test_autograd_requires_vector_input():
    with pytest.raises(ValueError):
        autograd_jacobian(_torch_rosenbrock, np.ones((2, 2)))


def test_torch_residual_returns_numpy():
    fun = torch_residual(_torch_rosenbrock)
    value = fun(np.array([-1.2, 1.0]))
    assert isinstance(value, np.ndarray)
    assert value.dtype == np.float64
    assert np.allclose(value, [-4.4, 2.2])
