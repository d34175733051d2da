"""Pluggable linear solvers for the Gauss-Newton system.

Each solver computes the minimizer of

```
    ||J dx + f||^2 + mu ||D dx||^2
```

for the Jacobian ``J`` and scaling diagonal ``D`` of the current trust state.
The lifecycle mirrors how the trust-region subproblem consumes them:
``init`` factors what depends only on ``J``, ``presolve`` fixes the damping
``mu``, and ``solve`` may then be called for any right-hand side.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
from scipy import linalg as sla

from .core import DBL_EPSILON, TrustState
from .utils import qr_rank

Array = np.ndarray


class LinearSolver(ABC):
    """Strategy interface for the Gauss-Newton linear solve."""

    name: str = ""

    def __init__(self, n: int, p: int) -> None:
        if n < 1 or p < 1:
            raise ValueError("n and p must be positive")
        self.n = int(n)
        self.p = int(p)
        self.mu = 0.0

    @abstractmethod
    def init(self, state: TrustState) -> None:
        """Factor the quantities that depend on ``state.J`` only."""

    @abstractmethod
    def presolve(self, mu: float, state: TrustState) -> None:
        """Prepare the factorization for damping parameter ``mu``."""

    @abstractmethod
    def solve(self, f: Array, g: Array, out: Array, state: TrustState) -> Array:
        """Write the step for residual ``f`` (gradient ``g = J^T f``) into ``out``."""

    def _check_mu(self, mu: float) -> float:
        if mu < 0.0:
            raise ValueError("mu must be non-negative")
        return float(mu)


class QRSolver(LinearSolver):
    """Column-pivoted QR of ``J`` (or of ``[J; sqrt(mu) D]`` when damped).

    Rank-deficient Jacobians are handled by solving only on the leading
    nonsingular block of ``R`` and setting the remaining components to zero.
    """

    name = "qr"

    def __init__(self, n: int, p: int) -> None:
        super().__init__(n, p)
        self._q: Optional[Array] = None
        self._r: Optional[Array] = None
        self._perm: Optional[Array] = None
        self._J: Optional[Array] = None
        self._damped = False
        self.rank = 0

    def init(self, state: TrustState) -> None:
        self._J = state.J
        self._factor(state.J)
        self._damped = False

    def _factor(self, A: Array) -> None:
        self._q, self._r, self._perm = sla.qr(A, mode="economic", pivoting=True)
        self.rank = qr_rank(self._r)

    def presolve(self, mu: float, state: TrustState) -> None:
        self.mu = self._check_mu(mu)
        if self._J is None:
            raise RuntimeError("init must be called before presolve")
        if self.mu == 0.0:
            if self._damped:
                self._factor(self._J)
                self._damped = False
        else:
            self._damped = True
            augmented = np.vstack([self._J, np.sqrt(self.mu) * np.diag(state.diag)])
            self._factor(augmented)

    def solve(self, f: Array, g: Array, out: Array, state: TrustState) -> Array:
        if self._r is None:
            raise RuntimeError("init must be called before solve")
        rhs = f
        if self.mu != 0.0:
            rhs = np.concatenate([f, np.zeros(self.p)])
        qtf = self._q.T @ rhs
        k = self.rank
        out.fill(0.0)
        if k > 0:
            z = sla.solve_triangular(self._r[:k, :k], qtf[:k], lower=False)
            out[self._perm[:k]] = -z
        return out


class CholeskySolver(LinearSolver):
    """Normal equations ``(J^T J + mu D^2) dx = -g`` via Cholesky.

    A matrix that is not numerically positive definite raises
    ``numpy.linalg.LinAlgError``.
    """

    name = "cholesky"

    def __init__(self, n: int, p: int) -> None:
        super().__init__(n, p)
        self._JTJ = np.zeros((p, p))
        self._factor = None

    def init(self, state: TrustState) -> None:
        np.dot(state.J.T, state.J, out=self._JTJ)

    def presolve(self, mu: float, state: TrustState) -> None:
        self.mu = self._check_mu(mu)
        A = self._JTJ.copy()
        if self.mu != 0.0:
            A[np.diag_indices(self.p)] += self.mu * state.diag**2
        self._factor = sla.cho_factor(A, lower=True, overwrite_a=True)

    def solve(self, f: Array, g: Array, out: Array, state: TrustState) -> Array:
        if self._factor is None:
            raise RuntimeError("presolve must be called before solve")
        out[:] = -sla.cho_solve(self._factor, g)
        return out


class SVDSolver(LinearSolver):
    """Singular value decomposition of the scaled Jacobian ``J D^{-1}``."""

    name = "svd"

    def __init__(self, n: int, p: int) -> None:
        super().__init__(n, p)
        self._u: Optional[Array] = None
        self._s: Optional[Array] = None
        self._vt: Optional[Array] = None
        self._diag: Optional[Array] = None

    def init(self, state: TrustState) -> None:
        self._diag = state.diag.copy()
        self._u, self._s, self._vt = np.linalg.svd(state.J / self._diag, full_matrices=False)

    def presolve(self, mu: float, state: TrustState) -> None:
        self.mu = self._check_mu(mu)

    def solve(self, f: Array, g: Array, out: Array, state: TrustState) -> Array:
        if self._s is None:
            raise RuntimeError("init must be called before solve")
        s = self._s
        utf = self._u.T @ f
        if self.mu == 0.0:
            tol = max(self.n, self.p) * DBL_EPSILON * (s[0] if s.size else 0.0)
            weights = np.zeros_like(s)
            mask = s > tol
            weights[mask] = 1.0 / s[mask]
        else:
            weights = s / (s * s + self.mu)
        out[:] = -(self._vt.T @ (weights * utf)) / self._diag
        return out


_SOLVERS = {
    QRSolver.name: QRSolver,
    CholeskySolver.name: CholeskySolver,
    SVDSolver.name: SVDSolver,
}


def make_linear_solver(name: str, n: int, p: int) -> LinearSolver:
    """Create a linear solver by name ("qr", "cholesky" or "svd")."""
    try:
        cls = _SOLVERS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unsupported linear solver {name!r}. Supported solvers: {sorted(_SOLVERS)}"
        ) from None
    return cls(n, p)


__all__ = [
    "LinearSolver",
    "QRSolver",
    "CholeskySolver",
    "SVDSolver",
    "make_linear_solver",
]
