"""Trust-region driver for nonlinear least squares.

Minimizes ``0.5 * ||f(x)||^2``. Each iteration prepares the trust-region
subproblem once and then tries steps for successively adjusted radii until a
step reduces the cost.
"""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np

from ..logging import get_logger
from .core import (
    FTOL,
    GTOL,
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
from .linear import make_linear_solver
from .subspace2d import Subspace2D
from .trs import TrustRegionSubproblem
from .utils import init_diag, scaled_infnorm, scaled_norm, update_diag

logger = get_logger(__name__)

Callback = Callable[[int, TrustState], None]

_SUBPROBLEMS = {
    Subspace2D.name: Subspace2D,
}


def make_trs(params: TrustRegionParameters, n: int, p: int) -> TrustRegionSubproblem:
    """Create the trust-region subproblem selected by ``params.trs``."""
    try:
        cls = _SUBPROBLEMS[params.trs]
    except KeyError:
        raise ValueError(
            f"Unsupported trust-region method {params.trs!r}. "
            f"Supported methods: {sorted(_SUBPROBLEMS)}"
        ) from None
    return cls(n, p)


def _make_jacobian(
    problem: LeastSquaresProblem, params: TrustRegionParameters
) -> Callable[[np.ndarray, np.ndarray], tuple[np.ndarray, int, int]]:
    """Return ``jac(x, f) -> (J, nfev, njev)`` for the configured Jacobian source."""
    if problem.jac is not None:

        def analytic(x: np.ndarray, f: np.ndarray) -> tuple[np.ndarray, int, int]:
            return np.asarray(problem.jac(x), dtype=float), 0, 1

        return analytic

    if params.jac_method == "autograd":

        def autograd(x: np.ndarray, f: np.ndarray) -> tuple[np.ndarray, int, int]:
            return autograd_jacobian(problem.fun, x), 0, 1

        return autograd

    if params.jac_method == "central":

        def central(x: np.ndarray, f: np.ndarray) -> tuple[np.ndarray, int, int]:
            jac, evals = central_jacobian(problem.fun, x, h=params.h_df, return_evals=True)
            return jac, int(evals), 0

        return central

    def forward(x: np.ndarray, f: np.ndarray) -> tuple[np.ndarray, int, int]:
        jac, evals = forward_jacobian(problem.fun, x, f=f, h=params.h_df, return_evals=True)
        return jac, int(evals), 0

    return forward


def _calc_rho(
    trs: TrustRegionSubproblem, state: TrustState, f_trial: np.ndarray, dx: np.ndarray
) -> float:
    """Ratio of actual to predicted reduction; -1 when the trial is no better."""
    normf = float(np.linalg.norm(state.f))
    normf_trial = float(np.linalg.norm(f_trial))
    if not np.isfinite(normf_trial) or normf_trial >= normf:
        return -1.0
    actual = 0.5 * (normf - normf_trial) * (normf + normf_trial)
    pred = trs.predicted_reduction(state, dx)
    if pred <= 0.0:
        return -1.0
    return actual / pred


def _xtol_satisfied(dx: np.ndarray, x: np.ndarray, xtol: float) -> bool:
    return bool(np.all(np.abs(dx) < xtol * xtol + xtol * np.abs(x)))


def least_squares(
    problem: LeastSquaresProblem,
    x0: np.ndarray,
    params: Optional[TrustRegionParameters] = None,
    xtol: float = XTOL,
    gtol: float = GTOL,
    ftol: float = FTOL,
    maxiter: int = 500,
    callback: Optional[Callback] = None,
    history: bool = False,
) -> LeastSquaresResult:
    """Trust-region solver for ``min_x 0.5 * ||f(x)||^2``.

    Parameters
    ----------
    problem:
        Residual (and optionally Jacobian) description.
    x0:
        Starting point, shape (p,).
    params:
        Method selection and tunable factors. Defaults to the 2D-subspace
        method with a QR Gauss-Newton solve and More scaling.
    xtol:
        Step test ``|dx_i| < xtol^2 + xtol * |x_i|`` for every component.
    gtol:
        Gradient test ``max_i |g_i| max(|x_i|, 1) <= gtol * max(cost, 1)``.
    ftol:
        Cost test ``|cost_old - cost| <= ftol * max(cost, 1)``; 0 disables it.
    maxiter:
        Maximum number of accepted steps.
    callback:
        Called as ``callback(nit, state)`` after every accepted step.
    history:
        Record every accepted iterate.
    """
    params = params if params is not None else TrustRegionParameters()
    if maxiter < 0:
        raise ValueError("maxiter must be non-negative")
    if xtol < 0 or gtol < 0 or ftol < 0:
        raise ValueError("tolerances must be non-negative")

    fun = problem.fun
    if problem.jac is None and params.jac_method == "autograd":
        fun = torch_residual(problem.fun)
    jacobian = _make_jacobian(problem, params)

    x = np.asarray(x0, dtype=float).reshape(-1).copy()
    p = x.shape[0]
    if problem.p is not None and problem.p != p:
        raise ValueError(f"x0 has {p} components but the problem declares p = {problem.p}")

    f = np.asarray(fun(x), dtype=float).reshape(-1)
    nfev = 1
    njev = 0
    n = f.shape[0]
    if problem.n is not None and problem.n != n:
        raise ValueError(f"fun returned {n} residuals but the problem declares n = {problem.n}")

    J, jac_fev, jac_jev = jacobian(x, f)
    nfev += jac_fev
    njev += jac_jev
    if J.shape != (n, p):
        raise ValueError(f"Jacobian has shape {J.shape}, expected {(n, p)}")

    diag = init_diag(J, np.zeros(p), params.scale)
    state = TrustState(x=x, f=f, J=J, g=J.T @ f, diag=diag)

    trs = make_trs(params, n, p)
    solver = make_linear_solver(params.solver, n, p)
    trs.init(state)

    delta = 0.3 * max(1.0, scaled_norm(diag, x))
    dx = np.zeros(p)
    x_trial = np.empty(p)

    hist: list[np.ndarray] = []
    if history:
        hist.append(x.copy())

    nit = 0
    status = Status.MAX_ITER
    message = "Maximum iterations reached."

    while True:
        cost = 0.5 * float(np.dot(state.f, state.f))
        if scaled_infnorm(state.x, state.g) <= gtol * max(cost, 1.0):
            status = Status.GTOL
            message = "Gradient tolerance satisfied."
            break
        if nit >= maxiter:
            break

        try:
            trs.preloop(state, solver)
        except (DegenerateGradientError, np.linalg.LinAlgError) as exc:
            status = Status.NUMERICAL_ERROR
            message = f"Subproblem setup failed: {exc}"
            logger.warning(message)
            break

        rejections = 0
        accepted = False
        f_trial = state.f
        while True:
            try:
                trs.step(state, delta, dx)
            except (NoRealRootError, np.linalg.LinAlgError) as exc:
                status = Status.NUMERICAL_ERROR
                message = f"Trial step failed: {exc}"
                logger.warning(message)
                break

            np.add(state.x, dx, out=x_trial)
            f_trial = np.asarray(fun(x_trial), dtype=float).reshape(-1)
            nfev += 1
            rho = _calc_rho(trs, state, f_trial, dx)

            if rho > 0.75:
                delta *= params.factor_up
            elif rho < 0.25:
                delta /= params.factor_down

            if rho > 0.0:
                accepted = True
                break

            rejections += 1
            logger.debug("rejected step: rho = %.6e, delta = %.6e", rho, delta)
            if rejections > params.max_rejections:
                status = Status.NO_PROGRESS
                message = "No step reduced the cost; trust region collapsed."
                logger.warning("%s (iteration %d, delta = %.6e)", message, nit, delta)
                break

        if not accepted:
            break

        state.x = x_trial.copy()
        state.f = f_trial
        J, jac_fev, jac_jev = jacobian(state.x, state.f)
        nfev += jac_fev
        njev += jac_jev
        state.J = J
        state.g = J.T @ state.f
        update_diag(J, state.diag, params.scale)
        nit += 1

        new_cost = 0.5 * float(np.dot(state.f, state.f))
        logger.debug(
            "iter %d: cost = %.12e, |dx| = %.6e, delta = %.6e",
            nit,
            new_cost,
            float(np.linalg.norm(dx)),
            delta,
        )

        if history:
            hist.append(state.x.copy())
        if callback is not None:
            callback(nit, state)

        if _xtol_satisfied(dx, state.x, xtol):
            status = Status.XTOL
            message = "Step tolerance satisfied."
            break
        if ftol > 0.0 and abs(cost - new_cost) <= ftol * max(new_cost, 1.0):
            status = Status.FTOL
            message = "Cost tolerance satisfied."
            break

    success = status in (Status.XTOL, Status.GTOL, Status.FTOL)
    cost = 0.5 * float(np.dot(state.f, state.f))
    logger.info("least_squares finished after %d iterations: %s (cost = %.6e)", nit, message, cost)

    return LeastSquaresResult(
        x=state.x,
        fun=cost,
        fvec=state.f,
        jac=state.J,
        grad=state.g,
        grad_norm=float(np.linalg.norm(state.g)),
        nit=nit,
        nfev=nfev,
        njev=njev,
        success=success,
        status=status,
        message=message,
        history=hist,
    )


__all__ = ["least_squares", "make_trs"]
