"""Complex roots of real polynomials via companion-matrix eigenvalues.

Coefficients are given lowest degree first, ``a[0] + a[1] x + ... + a[d] x^d``.
The workspace keeps its companion matrix between calls so repeated solves of
the same degree reuse one buffer.
"""

from __future__ import annotations

import numpy as np

Array = np.ndarray


class PolyComplexWorkspace:
    """Reusable solver for the complex roots of a degree-``degree`` polynomial."""

    def __init__(self, degree: int) -> None:
        if degree < 1:
            raise ValueError("polynomial degree must be at least 1")
        self.degree = int(degree)
        self._companion = np.zeros((self.degree, self.degree), dtype=float)

    def solve(self, coeffs: Array) -> Array:
        """Return the ``degree`` complex roots of the polynomial.

        Raises:
            ValueError: If the number of coefficients does not match the
                degree or the leading coefficient is zero.
            np.linalg.LinAlgError: If the coefficients are not finite or the
                eigenvalue iteration fails to converge.
        """
        a = np.asarray(coeffs, dtype=float).reshape(-1)
        d = self.degree
        if a.shape[0] != d + 1:
            raise ValueError(f"expected {d + 1} coefficients, got {a.shape[0]}")
        if a[d] == 0.0:
            raise ValueError("leading term of polynomial must be nonzero")
        if not np.all(np.isfinite(a)):
            raise np.linalg.LinAlgError("polynomial coefficients must be finite")

        # Frobenius companion matrix of the monic polynomial: ones on the
        # subdiagonal, normalized coefficients in the last column.
        m = self._companion
        m.fill(0.0)
        if d > 1:
            m[np.arange(1, d), np.arange(d - 1)] = 1.0
        m[:, d - 1] = -a[:d] / a[d]
        return np.linalg.eigvals(m).astype(complex)


def poly_complex_roots(coeffs: Array) -> Array:
    """One-shot helper returning the complex roots of ``coeffs`` (lowest first)."""
    a = np.asarray(coeffs, dtype=float).reshape(-1)
    if a.shape[0] < 2:
        raise ValueError("need at least two coefficients")
    return PolyComplexWorkspace(a.shape[0] - 1).solve(a)


__all__ = ["PolyComplexWorkspace", "poly_complex_roots"]
