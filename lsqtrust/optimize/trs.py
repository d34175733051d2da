"""Trust-region subproblem interface.

A subproblem method is created once per problem (sized by ``n`` and ``p``),
prepared once per outer iteration by :meth:`TrustRegionSubproblem.preloop`,
and then asked for trial steps for as many radii as the driver needs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from .core import TrustState
from .linear import LinearSolver

Array = np.ndarray


class TrustRegionSubproblem(ABC):
    """Base class for methods that compute a bounded trial step."""

    name: str = ""

    def __init__(self, n: int, p: int) -> None:
        if n < 1 or p < 1:
            raise ValueError("n and p must be positive")
        self.n = int(n)
        self.p = int(p)

    @abstractmethod
    def init(self, state: TrustState) -> None:
        """Reset per-problem state before the first iteration."""

    @abstractmethod
    def preloop(self, state: TrustState, solver: LinearSolver) -> None:
        """Compute the quantities shared by every trial step of one iteration."""

    @abstractmethod
    def step(self, state: TrustState, delta: float, dx: Optional[Array] = None) -> Array:
        """Return the trial step for trust-region radius ``delta``."""

    @abstractmethod
    def predicted_reduction(self, state: TrustState, dx: Array) -> float:
        """Return the reduction of ``0.5 ||f||^2`` predicted by the model for ``dx``."""


__all__ = ["TrustRegionSubproblem"]
