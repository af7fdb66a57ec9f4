"""
Differential operators for structure-guided smoothing.

This module provides:
    - LocalDiffusionKernel: Fused kernel accumulating y += c·s·G'DG·x
    - LocalDiffusionOperator: scipy LinearOperator view of the kernel

Usage:
    >>> from tensor_smoothing.operators.differential import LocalDiffusionKernel
    >>> kernel = LocalDiffusionKernel(Stencil.D22)
    >>> kernel.apply(x, y, tensors, c=1.0)
    >>>
    >>> A = kernel.as_operator(x.shape, tensors, shift=1.0)  # I + G'DG
    >>> Ax = A(x)
"""

from tensor_smoothing.operators.differential.diffusion_kernel import (
    LocalDiffusionKernel,
    LocalDiffusionOperator,
)

__all__ = [
    "LocalDiffusionKernel",
    "LocalDiffusionOperator",
]
