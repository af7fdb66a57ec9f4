"""
Conjugate-gradient solvers for matrix-free symmetric positive-definite systems.

The operator is any callable ``apply_a(x, y)`` that writes ``y = A·x`` for
image-shaped arrays; the initial value of the solution array is used as the
starting guess. Iteration stops when ``‖r‖ <= small·‖b‖`` or after
``niter`` iterations. Every 100th iteration the residual is recomputed
from its definition ``r = b - A·x`` to limit accumulated rounding error.

Non-convergence is not an error: the last iterate is kept and the
returned ``SmoothingResult`` carries the residual norms.

References:
    - Shewchuk (1994): An Introduction to the Conjugate Gradient Method Without the Agonizing Pain
    - Saad (2003): Iterative Methods for Sparse Linear Systems, §9.2
"""

from __future__ import annotations

import math
import time
from typing import TYPE_CHECKING

import numpy as np

from tensor_smoothing.utils.logging import get_logger, log_cg_iteration
from tensor_smoothing.utils.solver_result import SmoothingResult

from .vector_ops import VectorOps

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

logger = get_logger(__name__)

RESIDUAL_REFRESH_INTERVAL = 100


def _residual(apply_a, b, x, q, r, ops: VectorOps):
    """r = b - A·x (q is scratch)."""
    apply_a(x, q)
    ops.copy(b, r)
    ops.axpy(-1.0, q, r)


def conjugate_gradient(
    apply_a: Callable[[NDArray, NDArray], None],
    b: NDArray,
    x: NDArray,
    small: float = 0.01,
    niter: int = 100,
    ops: VectorOps | None = None,
) -> SmoothingResult:
    """
    Solve ``A·x = b`` by conjugate gradients, updating ``x`` in place.

    Args:
        apply_a: Callable writing ``y = A·x``
        b: Right-hand side
        x: Initial guess, overwritten with the solution
        small: Stop when the residual norm falls to ``small`` times ‖b‖
        niter: Maximum number of iterations
        ops: Vector operations (defaults to parallel VectorOps)

    Returns:
        SmoothingResult with method "cg"
    """
    ops = ops or VectorOps()
    start = time.perf_counter()
    d = np.empty_like(x)
    q = np.empty_like(x)
    r = np.empty_like(x)

    _residual(apply_a, b, x, q, r, ops)
    ops.copy(r, d)
    delta = ops.dot(r, r)
    bnorm = math.sqrt(ops.dot(b, b))
    rnorm = math.sqrt(delta)
    rnorm_initial = rnorm
    rnorm_small = bnorm * small
    history = [rnorm]

    niter_done = 0
    while niter_done < niter and rnorm > rnorm_small:
        apply_a(d, q)
        dq = ops.dot(d, q)
        alpha = delta / dq
        ops.axpy(alpha, d, x)
        refreshed = niter_done % RESIDUAL_REFRESH_INTERVAL == RESIDUAL_REFRESH_INTERVAL - 1
        if refreshed:
            _residual(apply_a, b, x, q, r, ops)
        else:
            ops.axpy(-alpha, q, r)
        delta_old = delta
        delta = ops.dot(r, r)
        beta = delta / delta_old
        ops.xpay(r, beta, d)
        rnorm = math.sqrt(delta)
        niter_done += 1
        history.append(rnorm)
        log_cg_iteration(logger, "cg", niter_done, niter, rnorm, bnorm, refreshed)

    return _finish("cg", niter_done, bnorm, rnorm_initial, rnorm, rnorm_small, history, start)


def preconditioned_conjugate_gradient(
    apply_a: Callable[[NDArray, NDArray], None],
    apply_m: Callable[[NDArray, NDArray], None],
    b: NDArray,
    x: NDArray,
    small: float = 0.01,
    niter: int = 100,
    ops: VectorOps | None = None,
) -> SmoothingResult:
    """
    Solve ``A·x = b`` by preconditioned conjugate gradients, updating ``x``.

    Args:
        apply_a: Callable writing ``y = A·x``
        apply_m: Callable writing ``y = M·x`` for an SPD approximation M of A⁻¹
        b: Right-hand side
        x: Initial guess, overwritten with the solution
        small: Stop when the residual norm falls to ``small`` times ‖b‖
        niter: Maximum number of iterations
        ops: Vector operations (defaults to parallel VectorOps)

    Returns:
        SmoothingResult with method "pcg"
    """
    ops = ops or VectorOps()
    start = time.perf_counter()
    d = np.empty_like(x)
    q = np.empty_like(x)
    r = np.empty_like(x)
    s = np.empty_like(x)

    _residual(apply_a, b, x, q, r, ops)
    apply_m(r, s)
    ops.copy(s, d)
    delta = ops.dot(r, s)
    bnorm = math.sqrt(ops.dot(b, b))
    rnorm = math.sqrt(ops.dot(r, r))
    rnorm_initial = rnorm
    rnorm_small = bnorm * small
    history = [rnorm]

    niter_done = 0
    while niter_done < niter and rnorm > rnorm_small:
        apply_a(d, q)
        dq = ops.dot(d, q)
        alpha = delta / dq
        ops.axpy(alpha, d, x)
        refreshed = niter_done % RESIDUAL_REFRESH_INTERVAL == RESIDUAL_REFRESH_INTERVAL - 1
        if refreshed:
            _residual(apply_a, b, x, q, r, ops)
        else:
            ops.axpy(-alpha, q, r)
        apply_m(r, s)
        delta_old = delta
        delta = ops.dot(r, s)
        beta = delta / delta_old
        ops.xpay(s, beta, d)
        rnorm = math.sqrt(ops.dot(r, r))
        niter_done += 1
        history.append(rnorm)
        log_cg_iteration(logger, "pcg", niter_done, niter, rnorm, bnorm, refreshed)

    return _finish("pcg", niter_done, bnorm, rnorm_initial, rnorm, rnorm_small, history, start)


def _finish(method, niter_done, bnorm, rnorm_initial, rnorm, rnorm_small, history, start) -> SmoothingResult:
    elapsed = time.perf_counter() - start
    return SmoothingResult(
        method=method,
        iterations=niter_done,
        bnorm=bnorm,
        rnorm_initial=rnorm_initial,
        rnorm=rnorm,
        tolerance=rnorm_small,
        residual_history=np.asarray(history),
        execution_time=elapsed,
    )
