import numpy as np
import pytest

from lsqtrust.optimize import (
    CholeskySolver,
    QRSolver,
    SVDSolver,
    TrustState,
    make_linear_solver,
)

SOLVERS = ["qr", "cholesky", "svd"]


def _state(rng: np.random.Generator, n: int = 7, p: int = 3) -> TrustState:
    J = rng.standard_normal((n, p))
    f = rng.standard_normal(n)
    diag = rng.uniform(0.5, 2.0, size=p)
    return TrustState.from_arrays(np.zeros(p), f, J, diag=diag)


def _solve(name: str, state: TrustState, mu: float) -> np.ndarray:
    n, p = state.J.shape
    solver = make_linear_solver(name, n, p)
    solver.init(state)
    solver.presolve(mu, state)
    out = np.empty(p)
    result = solver.solve(state.f, state.g, out, state)
    assert result is out
    return out


@pytest.mark.parametrize("name", SOLVERS)
def test_gauss_newton_step_matches_lstsq(rng, name):
    state = _state(rng)
    expected, *_ = np.linalg.lstsq(state.J, -state.f, rcond=None)
    assert np.allclose(_solve(name, state, 0.0), expected, atol=1e-10)


@pytest.mark.parametrize("name", SOLVERS)
def test_damped_step_matches_regularized_normal_equations(rng, name):
    state = _state(rng)
    mu = 0.7
    A = state.J.T @ state.J + mu * np.diag(state.diag**2)
    expected = np.linalg.solve(A, -state.g)
    assert np.allclose(_solve(name, state, mu), expected, atol=1e-10)


def test_qr_presolve_switches_between_damped_and_undamped(rng):
    state = _state(rng)
    n, p = state.J.shape
    solver = QRSolver(n, p)
    solver.init(state)
    out = np.empty(p)

    solver.presolve(1.0, state)
    damped = solver.solve(state.f, state.g, out, state).copy()
    solver.presolve(0.0, state)
    undamped = solver.solve(state.f, state.g, out, state).copy()

    expected, *_ = np.linalg.lstsq(state.J, -state.f, rcond=None)
    assert np.allclose(undamped, expected, atol=1e-10)
    assert not np.allclose(damped, undamped)


@pytest.mark.parametrize("name", ["qr", "svd"])
def test_rank_deficient_jacobian_gives_least_squares_solution(name):
    J = np.array([[1.0, 0.0], [2.0, 0.0], [3.0, 0.0]])
    f = np.array([1.0, -1.0, 2.0])
    state = TrustState.from_arrays(np.zeros(2), f, J)
    dx = _solve(name, state, 0.0)

    assert np.all(np.isfinite(dx))
    assert abs(dx[1]) < 1e-12
    # normal equations hold for a least-squares minimizer
    assert np.allclose(J.T @ (J @ dx + f), 0.0, atol=1e-12)


def test_qr_reports_rank(rng):
    J = np.array([[1.0, 0.0], [2.0, 0.0], [3.0, 0.0]])
    state = TrustState.from_arrays(np.zeros(2), np.ones(3), J)
    solver = QRSolver(3, 2)
    solver.init(state)
    assert solver.rank == 1


def test_cholesky_rejects_singular_normal_equations():
    J = np.array([[1.0, 0.0], [0.0, 0.0], [2.0, 0.0]])
    state = TrustState.from_arrays(np.zeros(2), np.ones(3), J)
    solver = CholeskySolver(3, 2)
    solver.init(state)
    with pytest.raises(np.linalg.LinAlgError):
        solver.presolve(0.0, state)


def test_cholesky_damping_regularizes_singular_system():
    J = np.array([[1.0, 0.0], [0.0, 0.0], [2.0, 0.0]])
    state = TrustState.from_arrays(np.zeros(2), np.ones(3), J)
    dx = _solve("cholesky", state, 1e-3)
    assert np.all(np.isfinite(dx))


def test_underdetermined_qr_step_solves_system(rng):
    J = rng.standard_normal((2, 4))
    f = rng.standard_normal(2)
    state = TrustState.from_arrays(np.zeros(4), f, J)
    dx = _solve("qr", state, 0.0)
    assert np.allclose(J @ dx, -f, atol=1e-12)


def test_make_linear_solver_types():
    assert isinstance(make_linear_solver("qr", 3, 2), QRSolver)
    assert isinstance(make_linear_solver("Cholesky", 3, 2), CholeskySolver)
    assert isinstance(make_linear_solver("svd", 3, 2), SVDSolver)
    with pytest.raises(ValueError):
        make_linear_solver("lu", 3, 2)


def test_solve_before_init_raises(rng):
    state = _state(rng)
    with pytest.raises(RuntimeError):
        QRSolver(7, 3).solve(state.f, state.g, np.empty(3), state)


def test_negative_mu_rejected(rng):
    state = _state(rng)
    solver = SVDSolver(7, 3)
    solver.init(state)
    with pytest.raises(ValueError):
        solver.presolve(-1.0, state)
