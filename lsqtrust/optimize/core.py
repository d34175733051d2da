"""Core interfaces shared by the nonlinear least-squares trust-region solver.

The solver minimizes ``0.5 * ||f(x)||^2`` for a residual vector ``f`` of
length ``n`` depending on ``p`` parameters. Everything that flows between the
outer driver, the trust-region subproblem and the linear solvers is defined
here so those pieces can be swapped independently.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

Array = np.ndarray
Residual = Callable[[Array], Array]
Jacobian = Callable[[Array], Array]

DBL_EPSILON = float(np.finfo(float).eps)

XTOL = DBL_EPSILON**0.9
GTOL = DBL_EPSILON ** (1.0 / 3.0)
FTOL = 0.0
H_DF = float(np.sqrt(DBL_EPSILON))

TRS_METHODS = ("subspace2D",)
LINEAR_SOLVERS = ("qr", "cholesky", "svd")
SCALE_METHODS = ("more", "levenberg", "marquardt")
JAC_METHODS = ("forward", "central", "autograd")


class DegenerateGradientError(ValueError):
    """Raised when the steepest-descent scale ``||g|| / ||J g||`` is undefined."""


class NoRealRootError(RuntimeError):
    """Raised when no real Lagrange multiplier minimizes the 2D boundary problem."""


class Status(Enum):
    """Termination status of :func:`least_squares`."""

    XTOL = "xtol"
    GTOL = "gtol"
    FTOL = "ftol"
    MAX_ITER = "max_iter"
    NO_PROGRESS = "no_progress"
    NUMERICAL_ERROR = "numerical_error"


@dataclass(frozen=True)
class LeastSquaresProblem:
    """Container describing a nonlinear least-squares problem.

    Args:
        fun: Residual function returning a vector of length ``n``.
        jac: Optional Jacobian returning an ``(n, p)`` matrix. When omitted
            the driver builds one according to
            :attr:`TrustRegionParameters.jac_method`.
        n: Number of residuals. Inferred from ``fun(x0)`` when None.
        p: Number of parameters. Inferred from ``x0`` when None.
    """

    fun: Residual
    jac: Optional[Jacobian] = None
    n: Optional[int] = None
    p: Optional[int] = None


@dataclass(frozen=True)
class TrustRegionParameters:
    """
    Tunable parameters of the trust-region driver.

    Args:
        trs: Trust-region subproblem method. Supported: "subspace2D".
        solver: Linear solver for the Gauss-Newton system. Supported values:
            "qr", "cholesky", "svd".
        scale: Scaling matrix strategy. Supported values: "more",
            "levenberg", "marquardt".
        jac_method: Jacobian source used when the problem has no ``jac``.
            Supported values: "forward", "central", "autograd".
        factor_up: Radius growth factor applied when ``rho > 0.75``.
        factor_down: Radius reduction divisor applied when ``rho < 0.25``.
        h_df: Relative finite-difference step size.
        max_rejections: Consecutive rejected trial steps tolerated within one
            iteration before the driver gives up.
    """

    trs: str = "subspace2D"
    solver: str = "qr"
    scale: str = "more"
    jac_method: str = "forward"
    factor_up: float = 3.0
    factor_down: float = 2.0
    h_df: float = H_DF
    max_rejections: int = 15

    def __post_init__(self) -> None:
        if self.trs not in TRS_METHODS:
            raise ValueError(
                f"Unsupported trust-region method {self.trs!r}. "
                f"Supported methods: {list(TRS_METHODS)}"
            )
        if self.solver not in LINEAR_SOLVERS:
            raise ValueError(
                f"Unsupported linear solver {self.solver!r}. "
                f"Supported solvers: {list(LINEAR_SOLVERS)}"
            )
        if self.scale not in SCALE_METHODS:
            raise ValueError(
                f"Unsupported scaling method {self.scale!r}. "
                f"Supported methods: {list(SCALE_METHODS)}"
            )
        if self.jac_method not in JAC_METHODS:
            raise ValueError(
                f"Unsupported Jacobian method {self.jac_method!r}. "
                f"Supported methods: {list(JAC_METHODS)}"
            )
        if self.factor_up <= 1.0:
            raise ValueError("factor_up must be greater than 1")
        if self.factor_down <= 1.0:
            raise ValueError("factor_down must be greater than 1")
        if self.h_df <= 0.0:
            raise ValueError("h_df must be positive")
        if self.max_rejections < 0:
            raise ValueError("max_rejections must be non-negative")


@dataclass
class TrustState:
    """Quantities of the current outer iteration shared with the subproblem.

    Attributes:
        x: Current parameter vector, shape (p,).
        f: Residual at ``x``, shape (n,).
        J: Jacobian at ``x``, shape (n, p).
        g: Gradient ``J^T f``, shape (p,).
        diag: Diagonal of the scaling matrix D, shape (p,).
    """

    x: Array
    f: Array
    J: Array
    g: Array
    diag: Array

    @classmethod
    def from_arrays(
        cls,
        x: Array,
        f: Array,
        J: Array,
        diag: Optional[Array] = None,
    ) -> "TrustState":
        """Build a state from residual and Jacobian, computing ``g = J^T f``."""
        x = np.asarray(x, dtype=float).reshape(-1)
        f = np.asarray(f, dtype=float).reshape(-1)
        J = np.asarray(J, dtype=float)
        if J.shape != (f.shape[0], x.shape[0]):
            raise ValueError(
                f"Jacobian shape {J.shape} does not match (n, p) = "
                f"({f.shape[0]}, {x.shape[0]})"
            )
        if diag is None:
            diag = np.ones(x.shape[0])
        return cls(
            x=x,
            f=f,
            J=J,
            g=J.T @ f,
            diag=np.asarray(diag, dtype=float).reshape(-1),
        )


@dataclass
class LeastSquaresResult:
    """Result object returned by :func:`least_squares`."""

    x: Array
    fun: float
    fvec: Array
    jac: Array
    grad: Array
    grad_norm: float
    nit: int
    nfev: int
    njev: int
    success: bool
    status: Status
    message: str
    history: List[Array] = field(default_factory=list)


__all__ = [
    "Array",
    "Residual",
    "Jacobian",
    "DBL_EPSILON",
    "XTOL",
    "GTOL",
    "FTOL",
    "H_DF",
    "DegenerateGradientError",
    "NoRealRootError",
    "Status",
    "LeastSquaresProblem",
    "TrustRegionParameters",
    "TrustState",
    "LeastSquaresResult",
]
