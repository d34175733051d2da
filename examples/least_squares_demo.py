"""
Example: Nonlinear least squares with lsqtrust

Fits three small problems with the 2D-subspace trust-region solver: the
badly scaled Powell system, an exponential decay curve with a finite
difference Jacobian, and the Rosenbrock residuals with a PyTorch autograd
Jacobian.
"""

import numpy as np
import torch

from lsqtrust import LeastSquaresProblem, TrustRegionParameters, least_squares


def example_powell_badly_scaled():
    """Example: Powell's badly scaled system with an analytic Jacobian."""
    print("=" * 60)
    print("Example 1: Powell Badly Scaled Function")
    print("=" * 60)

    def fun(x):
        return np.array([1.0e4 * x[0] * x[1] - 1.0, np.exp(-x[0]) + np.exp(-x[1]) - 1.0001])

    def jac(x):
        return np.array([[1.0e4 * x[1], 1.0e4 * x[0]], [-np.exp(-x[0]), -np.exp(-x[1])]])

    tol = np.finfo(float).eps ** 0.9
    result = least_squares(
        LeastSquaresProblem(fun=fun, jac=jac), np.array([0.0, 1.0]), xtol=tol, gtol=tol
    )
    print(f"Status: {result.status}")
    print(f"Solution: x = {result.x}")
    print(f"Sum of squares: {2.0 * result.fun:.3e}")
    print(f"Iterations: {result.nit}, residual evaluations: {result.nfev}")
    print()


def example_exponential_fit():
    """Example: Fit y = a exp(-b t) + c to noisy samples."""
    print("=" * 60)
    print("Example 2: Exponential Decay Fit (central differences)")
    print("=" * 60)

    rng = np.random.default_rng(0)
    t = np.linspace(0.0, 4.0, 40)
    y = 2.5 * np.exp(-1.3 * t) + 0.5 + 0.01 * rng.standard_normal(t.shape)

    def residual(x):
        return x[0] * np.exp(-x[1] * t) + x[2] - y

    params = TrustRegionParameters(jac_method="central", scale="marquardt")
    result = least_squares(LeastSquaresProblem(fun=residual), np.array([1.0, 1.0, 0.0]), params=params)
    print(f"Status: {result.status}")
    print(f"Fitted (a, b, c): {result.x}")
    print(f"Cost: {result.fun:.3e}")
    print()


def example_autograd_rosenbrock():
    """Example: Rosenbrock residuals written with torch operations."""
    print("=" * 60)
    print("Example 3: Rosenbrock with Autograd Jacobian")
    print("=" * 60)

    def residual(x):
        return torch.stack([10.0 * (x[1] - x[0] ** 2), 1.0 - x[0]])

    params = TrustRegionParameters(jac_method="autograd", solver="svd")
    result = least_squares(
        LeastSquaresProblem(fun=residual), np.array([-1.2, 1.0]), params=params, history=True
    )
    print(f"Status: {result.status}")
    print(f"Solution: x = {result.x}")
    print(f"Path length: {len(result.history)} iterates")
    print()


if __name__ == "__main__":
    print("\n" + "=" * 60)
    print("lsqtrust - Nonlinear Least Squares Examples")
    print("=" * 60 + "\n")

    example_powell_badly_scaled()
    example_exponential_fit()
    example_autograd_rosenbrock()

    print("=" * 60)
    print("All examples completed successfully!")
    print("=" * 60)
