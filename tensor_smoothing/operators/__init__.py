"""
Operator framework for tensor_smoothing.

Organization:
    stencils/      - Gradient stencils as immutable tap/weight data
    differential/  - Local diffusion kernel and its LinearOperator view
    filters/       - Binomial and low-pass edge-compensation filters

Conceptual Hierarchy:
    Stencils (fixed coefficients) -> Diffusion kernel (G'DG) -> Smoothing solvers (alg/)

Usage:
    >>> from tensor_smoothing.operators import LocalDiffusionKernel, Stencil
    >>> kernel = LocalDiffusionKernel(Stencil.D71)
    >>> kernel.apply(x, y, tensors)
"""

from tensor_smoothing.operators.differential import LocalDiffusionKernel, LocalDiffusionOperator
from tensor_smoothing.operators.filters import IsotropicLowpassFilter, LowpassFilterCache, smooth_s
from tensor_smoothing.operators.stencils import Stencil, StencilSpec, get_stencil_taps

__all__ = [
    "IsotropicLowpassFilter",
    "LocalDiffusionKernel",
    "LocalDiffusionOperator",
    "LowpassFilterCache",
    "Stencil",
    "StencilSpec",
    "get_stencil_taps",
    "smooth_s",
]
