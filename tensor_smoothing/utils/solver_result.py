"""
Result objects for smoothing solves.

``LocalSmoothingFilter.apply`` writes its output into a caller-provided
array and returns a ``SmoothingResult`` describing how the solve went.
Non-convergence is reported here instead of being raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray


@dataclass
class SmoothingResult:
    """
    Summary of one ``(I + c·K) y = x`` solve.

    Attributes:
        method: "tridiagonal", "cg" or "pcg" (or "copy" when nothing was solved)
        iterations: Number of CG iterations performed (0 for direct solves)
        bnorm: Norm of the right-hand side ``x``
        rnorm_initial: Residual norm before the first iteration
        rnorm: Final residual norm
        tolerance: Absolute stopping threshold ``small * bnorm``
        residual_history: Residual norm after every iteration, starting with ``rnorm_initial``
        execution_time: Wall-clock time of the solve in seconds
        metadata: Additional solver-specific information
    """

    method: str
    iterations: int = 0
    bnorm: float = 0.0
    rnorm_initial: float = 0.0
    rnorm: float = 0.0
    tolerance: float = 0.0
    residual_history: NDArray[np.floating] = field(default_factory=lambda: np.zeros(0))
    execution_time: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def converged(self) -> bool:
        """True when the final residual is within tolerance (always true for direct solves)."""
        if self.method in ("tridiagonal", "copy"):
            return True
        return self.rnorm <= self.tolerance

    @property
    def relative_residual(self) -> float:
        """Final residual norm relative to the right-hand side norm."""
        if self.bnorm == 0.0:
            return 0.0
        return self.rnorm / self.bnorm

    def __repr__(self) -> str:
        status = "converged" if self.converged else "not converged"
        return (
            f"SmoothingResult(method={self.method!r}, iterations={self.iterations}, "
            f"rnorm={self.rnorm:.3e}, bnorm={self.bnorm:.3e}, {status})"
        )
