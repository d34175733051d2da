"""Two-dimensional subspace trust-region step.

The step minimizes the Gauss-Newton model

```
    m(dx) = g^T dx + 1/2 dx^T B dx,    B = J^T J
```

subject to ``||dx|| <= delta`` and ``dx in span{dx_sd, dx_gn}``, where
``dx_gn`` is the Gauss-Newton step and ``dx_sd`` the steepest-descent step.

Once per outer iteration :meth:`Subspace2D.preloop` computes both directions,
an orthonormal basis ``Q`` of their span (pivoted QR of ``[dx_sd, dx_gn]``,
which also reveals when the two are parallel) and the projected quantities
``subg = Q^T g`` and ``subB = Q^T B Q``. For a radius smaller than
``||dx_gn||`` the minimizer lies on the boundary, and with ``dx = Q x`` the
problem becomes

```
    min_x subg^T x + 1/2 x^T subB x    subject to  ||x|| = delta
```

A Lagrange multiplier ``lam`` with ``(subB + lam I) x = -subg`` satisfies the
quartic

```
    lam^4 + 2 tr(B) lam^3 + (tr(B)^2 + 2 det(B) - ||g||^2 / delta^2) lam^2
          + (2 det(B) tr(B) - 2 g^T adj(B)^T g / delta^2) lam
          + det(B)^2 - g^T adj(B)^T adj(B) g / delta^2 = 0
```

and the real root with the smallest model value gives the step.

References:
    - Shultz, Schnabel & Byrd, *A Family of Trust-Region-Based Algorithms for
      Unconstrained Minimization with Strong Global Convergence Properties*,
      SIAM J. Numer. Anal. 22 (1985).
    - Byrd, Schnabel & Shultz, *Approximate solution of the trust region
      problem by minimization over two-dimensional subspaces*,
      Math. Programming 40 (1988).
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from scipy import linalg as sla
from scipy.linalg import blas

from ..logging import get_logger
from .core import (
    DBL_EPSILON,
    DegenerateGradientError,
    NoRealRootError,
    TrustState,
)
from .linear import LinearSolver
from .poly import PolyComplexWorkspace
from .trs import TrustRegionSubproblem
from .utils import qr_rank, quadratic_preduction

Array = np.ndarray

logger = get_logger(__name__)


def _readonly(arr: Array) -> Array:
    view = arr.view()
    view.flags.writeable = False
    return view


class Subspace2D(TrustRegionSubproblem):
    """2D-subspace trust-region subproblem solver.

    All buffers are allocated here and reused for every iteration; ``step``
    and ``predicted_reduction`` only read what ``preloop`` computed, so they
    can be called any number of times per iteration with different radii.
    An instance is not reentrant and must not be shared between concurrent
    solves.
    """

    name = "subspace2D"

    def __init__(self, n: int, p: int) -> None:
        super().__init__(n, p)
        self._dx_gn = np.zeros(p)
        self._dx_sd = np.zeros(p)
        self._workn = np.zeros(n)
        self._W = np.zeros((p, 2))
        self._Q = np.zeros((p, 2))
        self._JW = np.zeros((n, 2))
        self._subg = np.zeros(2)
        self._subB = np.zeros((2, 2))
        self._coeffs = np.zeros(5)
        self._x = np.zeros(2)
        self._y = np.zeros(2)
        self._C = np.zeros((2, 2))
        self._poly = PolyComplexWorkspace(4)
        self._ready = False

        self.norm_gn = 0.0
        self.norm_sd = 0.0
        self.rank = 0
        self.trB = 0.0
        self.detB = 0.0
        self.normg = 0.0
        self.term0 = 0.0
        self.term1 = 0.0

    @property
    def dx_gn(self) -> Array:
        """Gauss-Newton step of the current iteration (read-only view)."""
        return _readonly(self._dx_gn)

    @property
    def dx_sd(self) -> Array:
        """Steepest-descent step of the current iteration (read-only view)."""
        return _readonly(self._dx_sd)

    @property
    def basis(self) -> Array:
        """Orthonormal basis of ``span{dx_sd, dx_gn}``, shape (p, rank)."""
        return _readonly(self._Q[:, : self.rank])

    @property
    def subg(self) -> Array:
        """Projected gradient ``Q^T g``; zero unless ``rank == 2``."""
        return _readonly(self._subg)

    @property
    def subB(self) -> Array:
        """Projected Gauss-Newton matrix ``Q^T J^T J Q``; zero unless ``rank == 2``."""
        return _readonly(self._subB)

    def init(self, state: TrustState) -> None:
        self.rank = 0
        self._ready = False

    def preloop(self, state: TrustState, solver: LinearSolver) -> None:
        """Compute ``dx_gn``, ``dx_sd``, the subspace basis and projections.

        Raises:
            DegenerateGradientError: If ``||J g|| == 0`` or the
                steepest-descent scale ``(||g|| / ||J g||)^2`` is not finite.
            np.linalg.LinAlgError: If the linear solver fails.
        """
        self._ready = False

        solver.init(state)
        solver.presolve(0.0, state)
        solver.solve(state.f, state.g, self._dx_gn, state)
        if not np.all(np.isfinite(self._dx_gn)):
            raise np.linalg.LinAlgError("Gauss-Newton step is not finite")

        # dx_sd = -(||g|| / ||J g||)^2 g
        jg = np.dot(state.J, state.g, out=self._workn)
        norm_g = float(np.linalg.norm(state.g))
        norm_jg = float(np.linalg.norm(jg))
        if norm_jg == 0.0 or not np.isfinite(norm_jg):
            raise DegenerateGradientError(
                f"steepest-descent step undefined: ||g|| = {norm_g:.6e}, "
                f"||J g|| = {norm_jg:.6e}"
            )
        u = norm_g / norm_jg
        alpha = u * u
        if not np.isfinite(alpha):
            raise DegenerateGradientError(
                f"steepest-descent scale overflows: ||g|| = {norm_g:.6e}, "
                f"||J g|| = {norm_jg:.6e}"
            )
        np.multiply(state.g, -alpha, out=self._dx_sd)
        if not np.all(np.isfinite(self._dx_sd)):
            raise DegenerateGradientError("steepest-descent step is not finite")

        self.norm_gn = float(np.linalg.norm(self._dx_gn))
        self.norm_sd = float(np.linalg.norm(self._dx_sd))

        # Pivoted QR of W = [dx_sd, dx_gn]; rank 1 means the directions are parallel
        self._W[:, 0] = self._dx_sd
        self._W[:, 1] = self._dx_gn
        q, r, _ = sla.qr(self._W, mode="economic", pivoting=True)
        self.rank = qr_rank(r)
        self._Q[:, : q.shape[1]] = q

        logger.debug(
            "preloop: |dx_gn| = %.6e, |dx_sd| = %.6e, rank = %d",
            self.norm_gn,
            self.norm_sd,
            self.rank,
        )

        if self.rank < 2:
            self._clear_subspace()
        else:
            np.dot(self._Q.T, state.g, out=self._subg)
            # subB = (J Q)^T (J Q) as a rank-2 update, lower triangle only
            np.dot(state.J, self._Q, out=self._JW)
            self._subB[:] = blas.dsyrk(1.0, self._JW, trans=1, lower=1)

            B00 = self._subB[0, 0]
            B10 = self._subB[1, 0]
            B11 = self._subB[1, 1]
            self._subB[0, 1] = B10
            g0 = self._subg[0]
            g1 = self._subg[1]

            self.trB = float(B00 + B11)
            self.detB = float(B00 * B11 - B10 * B10)
            self.normg = float(np.linalg.norm(self._subg))

            # g^T adj(B)^T adj(B) g
            self.term0 = float(
                (B10 * B10 + B11 * B11) * g0 * g0
                - 2 * B10 * (B00 + B11) * g0 * g1
                + (B00 * B00 + B10 * B10) * g1 * g1
            )

            # g^T adj(B)^T g
            self.term1 = float(B11 * g0 * g0 + g1 * (B00 * g1 - 2 * B10 * g0))

        self._ready = True

    def _clear_subspace(self) -> None:
        # the projected problem only exists for a 2D subspace
        self._subg.fill(0.0)
        self._subB.fill(0.0)
        self.trB = 0.0
        self.detB = 0.0
        self.normg = 0.0
        self.term0 = 0.0
        self.term1 = 0.0

    def step(self, state: TrustState, delta: float, dx: Optional[Array] = None) -> Array:
        """Return the step for radius ``delta``, written into ``dx`` if given.

        Raises:
            ValueError: If ``delta`` is not positive.
            RuntimeError: If :meth:`preloop` has not run for this iteration.
            NoRealRootError: If no real multiplier of the boundary problem
                could be found.
            np.linalg.LinAlgError: If the quartic root finder fails.
        """
        if not delta > 0.0:
            raise ValueError(f"delta must be positive, got {delta!r}")
        if not self._ready:
            raise RuntimeError("preloop must be called before step")
        if dx is None:
            dx = np.empty(self.p)

        if self.norm_gn <= delta:
            # the unconstrained model minimizer is inside the region
            dx[:] = self._dx_gn
        elif self.rank < 2:
            # dx_sd and dx_gn are parallel, follow steepest descent to the boundary
            np.multiply(self._dx_sd, delta / self.norm_sd, out=dx)
        else:
            self._boundary_step(delta, dx)

        return dx

    def _boundary_step(self, delta: float, dx: Array) -> None:
        delta_sq = delta * delta
        u = self.normg / delta
        a = self._coeffs
        a[0] = self.detB * self.detB - self.term0 / delta_sq
        a[1] = 2 * self.detB * self.trB - 2 * self.term1 / delta_sq
        a[2] = self.trB * self.trB + 2 * self.detB - u * u
        a[3] = 2 * self.trB
        a[4] = 1.0

        roots = self._poly.solve(a)

        x = self._x
        best = -1
        best_cost = 0.0
        for i, lam in enumerate(roots):
            if abs(lam.imag) >= DBL_EPSILON:
                continue
            try:
                self._solution(lam.real, x)
            except np.linalg.LinAlgError:
                logger.debug("skipping multiplier %.12e: singular 2x2 system", lam.real)
                continue
            cost = self._objective(x)
            if not np.isfinite(cost):
                continue
            if best < 0 or cost < best_cost:
                best = i
                best_cost = cost

        if best < 0:
            logger.error(
                "no real multiplier minimizes the subspace model (delta = %.6e, roots = %s)",
                delta,
                roots,
            )
            raise NoRealRootError(
                f"no real Lagrange multiplier found for delta = {delta:.6e}"
            )

        self._solution(roots[best].real, x)
        np.dot(self._Q, x, out=dx)

    def _solution(self, lam: float, x: Array) -> Array:
        """Solve ``(subB + lam I) x = -subg`` by pivoted QR, in place."""
        C = self._C
        C[0, 0] = self._subB[0, 0] + lam
        C[1, 0] = self._subB[1, 0]
        C[0, 1] = self._subB[1, 0]
        C[1, 1] = self._subB[1, 1] + lam

        q, r, perm = sla.qr(C, pivoting=True)
        z = sla.solve_triangular(r, q.T @ self._subg, lower=False)
        x[perm] = -z
        return x

    def _objective(self, x: Array) -> float:
        """Subspace model ``subg^T x + 1/2 x^T subB x``."""
        np.dot(self._subB, x, out=self._y)
        return float(np.dot(self._subg, x) + 0.5 * np.dot(x, self._y))

    def predicted_reduction(self, state: TrustState, dx: Array) -> float:
        return quadratic_preduction(state.f, state.J, dx, self._workn)


__all__ = ["Subspace2D"]
