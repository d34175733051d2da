"""Nonlinear least-squares optimization with a 2D-subspace trust region.

Example
-------
>>> import numpy as np
>>> from lsqtrust.optimize import LeastSquaresProblem, least_squares
>>> def rosen_residual(x):
...     return np.array([10.0 * (x[1] - x[0] ** 2), 1.0 - x[0]])
>>> def rosen_jac(x):
...     return np.array([[-20.0 * x[0], 10.0], [-1.0, 0.0]])
>>> problem = LeastSquaresProblem(fun=rosen_residual, jac=rosen_jac)
>>> res = least_squares(problem, np.array([-1.2, 1.0]))
>>> np.round(res.x, 6)
array([1., 1.])
"""

from .core import (
    DBL_EPSILON,
    FTOL,
    GTOL,
    H_DF,
    XTOL,
    DegenerateGradientError,
    LeastSquaresProblem,
    LeastSquaresResult,
    NoRealRootError,
    Status,
    TrustRegionParameters,
    TrustState,
)
from .fdjac import autograd_jacobian, central_jacobian, forward_jacobian, torch_residual
from .linear import CholeskySolver, LinearSolver, QRSolver, SVDSolver, make_linear_solver
from .poly import PolyComplexWorkspace, poly_complex_roots
from .subspace2d import Subspace2D
from .trs import TrustRegionSubproblem
from .trust_region import least_squares, make_trs
from .utils import qr_rank, quadratic_preduction

__all__ = [
    "DBL_EPSILON",
    "FTOL",
    "GTOL",
    "H_DF",
    "XTOL",
    "CholeskySolver",
    "DegenerateGradientError",
    "LeastSquaresProblem",
    "LeastSquaresResult",
    "LinearSolver",
    "NoRealRootError",
    "PolyComplexWorkspace",
    "QRSolver",
    "SVDSolver",
    "Status",
    "Subspace2D",
    "TrustRegionParameters",
    "TrustRegionSubproblem",
    "TrustState",
    "autograd_jacobian",
    "central_jacobian",
    "forward_jacobian",
    "least_squares",
    "make_linear_solver",
    "make_trs",
    "poly_complex_roots",
    "qr_rank",
    "quadratic_preduction",
    "torch_residual",
]
