"""
Auxiliary filters used before smoothing.

This module provides:
    - smooth_s: Binomial average S'S with clamped edges
    - IsotropicLowpassFilter: Radial FFT low-pass with a Kaiser-shaped transition
    - LowpassFilterCache: Lazily built low-pass filter keyed by kmax

Usage:
    >>> from tensor_smoothing.operators.filters import smooth_s, LowpassFilterCache
    >>> smooth_s(x, x)                       # in place
    >>> LowpassFilterCache().get(0.35).apply(x, y)
"""

from tensor_smoothing.operators.filters.binomial import smooth_s
from tensor_smoothing.operators.filters.lowpass import IsotropicLowpassFilter, LowpassFilterCache

__all__ = [
    "IsotropicLowpassFilter",
    "LowpassFilterCache",
    "smooth_s",
]
