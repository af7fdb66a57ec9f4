"""
Binomial averaging filter S'S.

Each axis is filtered with the 3-point binomial ``[1/4, 1/2, 1/4]``,
neighbors outside the array being clamped to the edge sample. In 2D the
combined weights are 1/4 (center), 1/8 (edge neighbors) and 1/16
(corners); in 3D 1/8, 1/16, 1/32 and 1/64.

Smoothing filters for tensor-guided diffusion attenuate Nyquist-frequency
noise poorly; applying S'S first compensates for that.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from scipy.ndimage import convolve1d

from tensor_smoothing.utils.exceptions import validate_image_arrays

if TYPE_CHECKING:
    from numpy.typing import NDArray

_BINOMIAL = np.array([0.25, 0.5, 0.25])


def smooth_s(x: NDArray, y: NDArray) -> NDArray:
    """
    Compute ``y = S'S x`` with the separable binomial filter.

    Args:
        x: Input array (rank 1, 2 or 3)
        y: Output array of the same shape; may be x itself

    Returns:
        y
    """
    validate_image_arrays(x, y, component="smooth_s")
    result = np.asarray(x, dtype=np.float64)
    for axis in range(result.ndim):
        # mode="nearest" clamps neighbors to the edge sample
        result = convolve1d(result, _BINOMIAL, axis=axis, mode="nearest")
    y[...] = result
    return y
