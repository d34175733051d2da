"""Numerical helpers shared by the trust-region driver and its subproblems.

These routines operate on preallocated buffers where a caller supplies one,
so the per-trial code path in the driver does not allocate vectors of length
``n`` or ``p``.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from .core import DBL_EPSILON

Array = np.ndarray


def qr_rank(r: Array, tol: Optional[float] = None) -> int:
    """Return the numerical rank of a column-pivoted QR factor.

    With column pivoting the diagonal of ``R`` is non-increasing in
    magnitude, so the rank is the number of leading diagonal entries whose
    magnitude exceeds ``tol``.

    Parameters
    ----------
    r:
        Upper trapezoidal factor from a pivoted QR decomposition.
    tol:
        Absolute threshold. Defaults to ``max(r.shape) * eps * |r[0, 0]|``.
    """
    r = np.asarray(r)
    k = min(r.shape)
    if k == 0:
        return 0
    diag = np.abs(np.diag(r)[:k])
    if tol is None:
        tol = max(r.shape) * DBL_EPSILON * float(diag[0])
    rank = 0
    for value in diag:
        if value <= tol:
            break
        rank += 1
    return rank


def quadratic_preduction(f: Array, J: Array, dx: Array, work: Optional[Array] = None) -> float:
    """Predicted reduction of ``0.5 ||f||^2`` under the linear model.

    Returns ``-(f^T (J dx) + 0.5 ||J dx||^2)``, the decrease of
    ``0.5 ||f + J dx||^2`` relative to ``0.5 ||f||^2``. ``work`` receives
    ``J dx`` when provided (length ``n``).
    """
    if work is None:
        jdx = J @ dx
    else:
        jdx = np.dot(J, dx, out=work)
    norm_jdx = float(np.linalg.norm(jdx))
    fTjdx = float(np.dot(f, jdx))
    return -(fTjdx + 0.5 * norm_jdx * norm_jdx)


def scaled_norm(diag: Array, x: Array) -> float:
    """Return ``||D x||`` for the diagonal scaling matrix ``D``."""
    return float(np.linalg.norm(diag * x))


def scaled_infnorm(x: Array, g: Array) -> float:
    """Return ``max_i |g_i| * max(|x_i|, 1)``."""
    if g.size == 0:
        return 0.0
    return float(np.max(np.abs(g) * np.maximum(np.abs(x), 1.0)))


def _column_norms(J: Array) -> Array:
    norms = np.linalg.norm(J, axis=0)
    norms[norms == 0.0] = 1.0
    return norms


def init_diag(J: Array, diag: Array, method: str) -> Array:
    """Initialize the scaling diagonal in place from the first Jacobian.

    ``"levenberg"`` uses the identity; ``"more"`` and ``"marquardt"`` use the
    Euclidean column norms of ``J``, with zero columns mapped to 1.
    """
    if method == "levenberg":
        diag.fill(1.0)
    elif method in ("more", "marquardt"):
        diag[:] = _column_norms(J)
    else:
        raise ValueError(f"Unknown scaling method {method!r}")
    return diag


def update_diag(J: Array, diag: Array, method: str) -> Array:
    """Update the scaling diagonal in place after a new Jacobian evaluation.

    ``"more"`` keeps the running maximum of the column norms, which makes the
    scaling invariant under later shrinking of the columns. ``"marquardt"``
    tracks the current column norms and ``"levenberg"`` leaves D alone.
    """
    if method == "levenberg":
        return diag
    if method == "more":
        np.maximum(diag, _column_norms(J), out=diag)
    elif method == "marquardt":
        diag[:] = _column_norms(J)
    else:
        raise ValueError(f"Unknown scaling method {method!r}")
    return diag


__all__ = [
    "qr_rank",
    "quadratic_preduction",
    "scaled_norm",
    "scaled_infnorm",
    "init_diag",
    "update_diag",
]
