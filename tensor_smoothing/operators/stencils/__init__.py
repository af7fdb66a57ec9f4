"""
Gradient stencils for local diffusion kernels.

Available Stencils:
    - D21: 2x1, isotropic diffusion only (per-edge averaged scale factors)
    - D22: 2x2, the default
    - D24: 2x4, 1D and 2D only
    - D33: 3x3 Scharr
    - D71: 7x1 derivative filter
    - D91: 9x1 derivative filter, 1D and 2D only

Usage:
    >>> from tensor_smoothing.operators.stencils import Stencil, get_stencil_taps
    >>> taps = get_stencil_taps(Stencil.D33, 2)
"""

from tensor_smoothing.operators.stencils.local_stencils import (
    C71,
    C91,
    Stencil,
    StencilSpec,
    StencilTaps,
    get_stencil_taps,
)

__all__ = [
    "C71",
    "C91",
    "Stencil",
    "StencilSpec",
    "StencilTaps",
    "get_stencil_taps",
]
