"""Pytest configuration and shared fixtures for lsqtrust tests.

This module provides:
- Deterministic RNG fixtures for numpy and torch
- Shared least-squares test problems
"""

import os

import numpy as np
import pytest
import torch


def _seed() -> int:
    return int(os.environ.get("TEST_RNG_SEED", "0"))


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    """
    return np.random.default_rng(_seed())


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds() -> None:
    """Set global numpy and torch seeds for every test."""
    np.random.seed(_seed())
    torch.manual_seed(_seed())


def rosenbrock_residual(x: np.ndarray) -> np.ndarray:
    return np.array([10.0 * (x[1] - x[0] ** 2), 1.0 - x[0]])


def rosenbrock_jac(x: np.ndarray) -> np.ndarray:
    return np.array([[-20.0 * x[0], 10.0], [-1.0, 0.0]])


@pytest.fixture
def rosenbrock():
    """Residual and Jacobian of the Rosenbrock function written as least squares."""
    return rosenbrock_residual, rosenbrock_jac
