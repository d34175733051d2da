"""Jacobian approximations for residual functions without an analytic Jacobian.

Finite differences perturb one parameter at a time with the step
``h_j = h * |x_j|`` (``h`` when ``x_j == 0``). The autograd variant evaluates
the exact Jacobian of a residual written with PyTorch operations.
"""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np
import torch

from .core import H_DF, Residual

Array = np.ndarray


def _perturbation(xj: float, h: float) -> float:
    delta = h * abs(xj)
    if delta == 0.0:
        delta = h
    return delta


def forward_jacobian(
    fun: Residual, x: Array, f: Optional[Array] = None, h: float = H_DF,
    return_evals: bool = False,
) -> Array | tuple[Array, int]:
    """Forward-difference Jacobian ``(f(x + h_j e_j) - f(x)) / h_j``.

    Parameters
    ----------
    fun:
        Residual function.
    x:
        Point where the Jacobian is approximated.
    f:
        Residual at ``x`` if already known; evaluated otherwise.
    h:
        Relative step size.
    """
    if h <= 0:
        raise ValueError("h must be positive")
    x = np.asarray(x, dtype=float).copy()
    evals = 0
    if f is None:
        f = np.asarray(fun(x), dtype=float)
        evals += 1
    jac = np.empty((f.shape[0], x.shape[0]))
    for j in range(x.shape[0]):
        xj = x[j]
        delta = _perturbation(xj, h)
        x[j] = xj + delta
        jac[:, j] = (np.asarray(fun(x), dtype=float) - f) / delta
        x[j] = xj
        evals += 1
    if return_evals:
        return jac, evals
    return jac


def central_jacobian(
    fun: Residual, x: Array, h: float = H_DF, return_evals: bool = False
) -> Array | tuple[Array, int]:
    """Central-difference Jacobian ``(f(x + h_j/2 e_j) - f(x - h_j/2 e_j)) / h_j``."""
    if h <= 0:
        raise ValueError("h must be positive")
    x = np.asarray(x, dtype=float).copy()
    columns = []
    evals = 0
    for j in range(x.shape[0]):
        xj = x[j]
        delta = _perturbation(xj, h)
        x[j] = xj + 0.5 * delta
        f_plus = np.asarray(fun(x), dtype=float)
        x[j] = xj - 0.5 * delta
        f_minus = np.asarray(fun(x), dtype=float)
        x[j] = xj
        evals += 2
        columns.append((f_plus - f_minus) / delta)
    jac = np.stack(columns, axis=1)
    if return_evals:
        return jac, evals
    return jac


def torch_residual(fun: Callable[[torch.Tensor], torch.Tensor]) -> Residual:
    """Wrap a residual written with torch operations into a NumPy callable."""

    def wrapped(x: Array) -> Array:
        with torch.no_grad():
            value = fun(torch.as_tensor(np.asarray(x, dtype=float), dtype=torch.float64))
        return value.detach().cpu().numpy().astype(float).reshape(-1)

    return wrapped


def autograd_jacobian(fun: Callable[[torch.Tensor], torch.Tensor], x: Array) -> Array:
    """
    Exact Jacobian of a torch-written residual using PyTorch's autograd.

    Args:
        fun: Callable taking a 1D float64 tensor and returning a 1D tensor.
        x: Point where the Jacobian is evaluated.

    Returns:
        ``(n, p)`` NumPy array.

    Raises:
        ValueError: If ``fun`` does not return a 1D tensor.
    """
    params = torch.as_tensor(np.asarray(x, dtype=float), dtype=torch.float64)
    if params.ndim != 1:
        raise ValueError(f"x must be 1D, got shape {tuple(params.shape)}")

    value = fun(params)
    if not isinstance(value, torch.Tensor) or value.ndim != 1:
        raise ValueError("fun must return a 1D tensor for autograd Jacobians")

    jac = torch.autograd.functional.jacobian(fun, params)
    return jac.detach().cpu().numpy().astype(float)


__all__ = [
    "forward_jacobian",
    "central_jacobian",
    "torch_residual",
    "autograd_jacobian",
]
