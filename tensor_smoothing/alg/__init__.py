"""
Smoothing algorithms.

This module contains:
- local_smoothing: LocalSmoothingFilter solving (I + c·s·G'DG) y = x
- numerical: Tridiagonal and conjugate-gradient solvers
"""

from tensor_smoothing.alg.local_smoothing import LocalSmoothingFilter

__all__ = ["LocalSmoothingFilter"]
