"""
Linear solvers for smoothing systems.

This module contains:
- tridiagonal: Thomas algorithm for the 1D smoothing system
- conjugate_gradient: CG and preconditioned CG on matrix-free operators
- vector_ops: Blockwise dot/axpy/xpay over image-shaped arrays
"""

from .conjugate_gradient import conjugate_gradient, preconditioned_conjugate_gradient
from .tridiagonal import smoothing_subdiagonal, solve_smoothing_1d, solve_symmetric_tridiagonal
from .vector_ops import VectorOps

__all__ = [
    "VectorOps",
    "conjugate_gradient",
    "preconditioned_conjugate_gradient",
    "smoothing_subdiagonal",
    "solve_smoothing_1d",
    "solve_symmetric_tridiagonal",
]
