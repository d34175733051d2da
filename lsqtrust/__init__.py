"""lsqtrust - nonlinear least squares with a 2D-subspace trust-region step."""

__version__ = "0.1.0"

from .logging import configure_logging, get_logger, set_log_level
from .optimize import (
    LeastSquaresProblem,
    LeastSquaresResult,
    Status,
    Subspace2D,
    TrustRegionParameters,
    TrustState,
    least_squares,
    make_linear_solver,
)

__all__ = [
    "__version__",
    "LeastSquaresProblem",
    "LeastSquaresResult",
    "Status",
    "Subspace2D",
    "TrustRegionParameters",
    "TrustState",
    "configure_logging",
    "get_logger",
    "least_squares",
    "make_linear_solver",
    "set_log_level",
]
