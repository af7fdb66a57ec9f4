"""
Direct solve of the 1D smoothing system.

In 1D the smoothing system ``(I + c·s·G'G) y = x`` with the two-point
gradient is symmetric tridiagonal. With sub-diagonal coefficients

    e[i] = -c                           (no scale factors)
    e[i] = -0.5·c·(s[i] + s[i-1])       (with scale factors s)

for i = 1..n-1 and ``e[0] = e[n] = 0``, the diagonal is
``1 - e[i] - e[i+1]``. Rows sum to one, so constants pass unchanged.
The Thomas algorithm solves it exactly in O(n).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from tensor_smoothing.utils.exceptions import DimensionMismatchError

if TYPE_CHECKING:
    from numpy.typing import NDArray


def smoothing_subdiagonal(n: int, c: float, s: NDArray | None = None) -> NDArray:
    """
    Sub-diagonal ``e`` of length ``n + 1`` for the 1D smoothing system.

    Args:
        n: System size
        c: Smoothing gain
        s: Optional scale factors of length n
    """
    e = np.zeros(n + 1)
    if n > 1:
        if s is None:
            e[1:n] = -c
        else:
            e[1:n] = -0.5 * c * (s[1:] + s[:-1])
    return e


def solve_symmetric_tridiagonal(e: NDArray, x: NDArray, y: NDArray) -> NDArray:
    """
    Solve ``A y = x`` for the symmetric tridiagonal A with off-diagonal ``e``.

    A has diagonal ``1 - e[i] - e[i+1]`` and off-diagonal entries
    ``A[i, i-1] = A[i-1, i] = e[i]``. Forward elimination is followed by back
    substitution; ``x`` and ``y`` may be the same array.

    Args:
        e: Off-diagonal coefficients, length n + 1 with e[0] = e[n] = 0
        x: Right-hand side, length n
        y: Solution output, length n

    Returns:
        y
    """
    n = len(x)
    if len(e) != n + 1:
        raise DimensionMismatchError(array_name="e", provided_shape=e.shape, expected_shape=(n + 1,))
    if n == 0:
        return y

    w = np.zeros(n)
    t = 1.0 - e[0] - e[1]
    y[0] = x[0] / t
    for i in range(1, n):
        di = 1.0 - e[i] - e[i + 1]
        ei = e[i]
        w[i] = ei / t
        t = di - ei * w[i]
        y[i] = (x[i] - ei * y[i - 1]) / t

    # Back substitution
    for i in range(n - 1, 0, -1):
        y[i - 1] -= w[i] * y[i]
    return y


def solve_smoothing_1d(c: float, s: NDArray | None, x: NDArray, y: NDArray) -> NDArray:
    """Solve ``(I + c·s·G'G) y = x`` along a 1D array."""
    return solve_symmetric_tridiagonal(smoothing_subdiagonal(len(x), c, s), x, y)
