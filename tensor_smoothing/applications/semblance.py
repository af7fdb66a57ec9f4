"""
Local semblance along structure-aligned directions.

Semblance is the ratio

    s = smooth2(smooth1(f)²) / smooth2(smooth1(f²))

where smooth1 averages along the chosen direction(s) and smooth2 along the
orthogonal ones. It lies in [0, 1] and equals 1 where the image is
constant along the smooth1 directions. Directions are those of the
eigenvectors of a tensor field: for 2D ``U`` (the first eigenvector,
typically normal to linear features) and ``V``, for 3D also ``W``.

Each smoothing is a ``LocalSmoothingFilter`` solve with a D71 kernel in
which the tensor eigenvalues are temporarily set to 1 for the selected
directions and 0 for the others. Inputs are first low-passed to suppress
noise near Nyquist that the D71 stencil does not attenuate.

Sharing one tensor field between threads that compute semblance at the
same time is not safe, because eigenvalues are overridden during each
smoothing.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from tensor_smoothing.alg.local_smoothing import LocalSmoothingFilter
from tensor_smoothing.operators.differential import LocalDiffusionKernel
from tensor_smoothing.operators.stencils import Stencil
from tensor_smoothing.tensors.eigen import EigenTensors2, EigenTensors3, override_eigenvalues
from tensor_smoothing.utils.exceptions import ConfigurationError, DimensionMismatchError, validate_parameter_value
from tensor_smoothing.utils.logging import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = get_logger(__name__)

_COMPONENT = "LocalSemblanceFilter"


class Direction2(Enum):
    """Smoothing directions for 2D images."""

    U = "U"
    V = "V"
    UV = "UV"

    @property
    def eigenvalues(self) -> tuple[float, float]:
        return tuple(1.0 if axis in self.value else 0.0 for axis in "UV")

    @property
    def orthogonal(self) -> Direction2:
        return Direction2.V if self is Direction2.U else Direction2.U


class Direction3(Enum):
    """Smoothing directions for 3D images."""

    U = "U"
    V = "V"
    W = "W"
    UV = "UV"
    UW = "UW"
    VW = "VW"
    UVW = "UVW"

    @property
    def eigenvalues(self) -> tuple[float, float, float]:
        return tuple(1.0 if axis in self.value else 0.0 for axis in "UVW")

    @property
    def orthogonal(self) -> Direction3:
        return _ORTHOGONAL3[self]


_ORTHOGONAL3 = {
    Direction3.U: Direction3.VW,
    Direction3.V: Direction3.UW,
    Direction3.W: Direction3.UV,
    Direction3.UV: Direction3.W,
    Direction3.UW: Direction3.V,
    Direction3.VW: Direction3.U,
    Direction3.UVW: Direction3.U,
}


class LaplacianSmoother:
    """
    Smoother of half-width ``half_width`` samples along selected directions.

    The smoothing gain is ``half_width·(half_width + 1)/6``; a half-width of
    zero copies the input.
    """

    def __init__(self, half_width: int, smoothing_filter: LocalSmoothingFilter, kmax: float = 0.35):
        validate_parameter_value(
            half_width, "half_width", expected_type=int, valid_range=(-1, None), component=_COMPONENT
        )
        self.half_width = half_width
        self.scale = half_width * (half_width + 1) / 6.0
        self.filter = smoothing_filter
        self.kmax = kmax

    def apply(
        self,
        f: NDArray,
        g: NDArray,
        direction: Direction2 | Direction3 | None = None,
        tensors: EigenTensors2 | EigenTensors3 | None = None,
    ):
        if self.scale == 0.0:
            g[...] = f
            return
        if f.ndim == 1:
            self.filter.apply(f, g, c=self.scale)
            return
        lowpassed = np.empty_like(f, dtype=np.float64)
        with override_eigenvalues(tensors, direction.eigenvalues):
            self.filter.apply_smooth_l(self.kmax, f, lowpassed)
            result = self.filter.apply(lowpassed, g, tensors, self.scale)
        if not result.converged:
            logger.debug(f"Semblance smoothing along {direction.name} did not converge: {result!r}")


class LocalSemblanceFilter:
    """
    Direction-selective local semblance.

    Args:
        half_width1: Half-width of smoothing along the semblance direction(s)
        half_width2: Half-width of smoothing along the orthogonal direction(s)
        small: CG stopping tolerance for each smoothing
        niter: Maximum CG iterations for each smoothing
        stencil: Kernel stencil (D71 by default)
        kmax: Maximum wavenumber passed by the low-pass applied before smoothing

    Usage:
        >>> lsf = LocalSemblanceFilter(2, 8)
        >>> s = lsf.semblance(f, Direction2.V, tensors)
    """

    def __init__(
        self,
        half_width1: int,
        half_width2: int,
        small: float = 0.001,
        niter: int = 1000,
        stencil: Stencil | str = Stencil.D71,
        kmax: float = 0.35,
    ):
        if not isinstance(kmax, (int, float)) or not 0.0 < kmax < 0.5:
            raise ConfigurationError("kmax", kmax, valid_range=(0.0, 0.5), component=_COMPONENT)
        self._filter = LocalSmoothingFilter(small, niter, LocalDiffusionKernel(stencil))
        self._smoother1 = LaplacianSmoother(half_width1, self._filter, kmax)
        self._smoother2 = LaplacianSmoother(half_width2, self._filter, kmax)

    @property
    def smoothing_filter(self) -> LocalSmoothingFilter:
        return self._filter

    def __repr__(self) -> str:
        return (
            f"LocalSemblanceFilter(half_width1={self._smoother1.half_width}, "
            f"half_width2={self._smoother2.half_width}, stencil={self._filter.kernel.stencil.name})"
        )

    def semblance(
        self,
        f: NDArray,
        direction: Direction2 | Direction3 | str | None = None,
        tensors: EigenTensors2 | EigenTensors3 | None = None,
        out: NDArray | None = None,
    ) -> NDArray:
        """
        Compute local semblance of ``f``.

        Args:
            f: Input image (rank 1, 2 or 3)
            direction: Semblance direction(s); required for 2D and 3D
            tensors: Eigen-decomposed tensor field; required for 2D and 3D
            out: Optional output array

        Returns:
            Semblance in [0, 1], same shape as f
        """
        f = np.asarray(f, dtype=np.float64)
        direction = self._check(f, direction, tensors)
        sn = self._smooth(self._smoother1, f, direction, tensors)
        sn *= sn
        sn = self._smooth(self._smoother2, sn, _orthogonal(direction), tensors)
        sd = self._smooth(self._smoother1, f * f, direction, tensors)
        sd = self._smooth(self._smoother2, sd, _orthogonal(direction), tensors)

        if out is None:
            out = np.empty_like(f)
        with np.errstate(divide="ignore", invalid="ignore"):
            ratio = sn / sd
        out[...] = np.where((sd <= 0.0) | (sn < 0.0), 0.0, np.where(sd < sn, 1.0, ratio))
        return out

    def smooth1(self, f, direction=None, tensors=None) -> NDArray:
        """Smooth along ``direction``."""
        f = np.asarray(f, dtype=np.float64)
        direction = self._check(f, direction, tensors)
        return self._smooth(self._smoother1, f, direction, tensors)

    def smooth2(self, f, direction=None, tensors=None) -> NDArray:
        """Smooth along the directions orthogonal to ``direction``."""
        f = np.asarray(f, dtype=np.float64)
        direction = self._check(f, direction, tensors)
        return self._smooth(self._smoother2, f, _orthogonal(direction), tensors)

    @staticmethod
    def _smooth(smoother, f, direction, tensors):
        g = np.empty_like(f)
        smoother.apply(f, g, direction, tensors)
        return g

    @staticmethod
    def _check(f, direction, tensors):
        if f.ndim == 1:
            return None
        if f.ndim == 2:
            expected_tensors, expected_direction = EigenTensors2, Direction2
        elif f.ndim == 3:
            expected_tensors, expected_direction = EigenTensors3, Direction3
        else:
            raise DimensionMismatchError(
                array_name="f",
                provided_shape=f.shape,
                expected_shape=(),
                component=_COMPONENT,
                context="supported ranks are (1, 2, 3)",
            )
        if not isinstance(tensors, expected_tensors):
            raise ConfigurationError(
                "tensors",
                tensors,
                expected_type=expected_tensors,
                component=_COMPONENT,
                reason=f"{f.ndim}D semblance needs an {expected_tensors.__name__} field",
            )
        if tensors.shape != f.shape:
            raise DimensionMismatchError(
                array_name="tensors", provided_shape=tensors.shape, expected_shape=f.shape, component=_COMPONENT
            )
        if isinstance(direction, str) and direction.upper() in expected_direction.__members__:
            direction = expected_direction[direction.upper()]
        if not isinstance(direction, expected_direction):
            raise ConfigurationError("direction", direction, expected_type=expected_direction, component=_COMPONENT)
        return direction


def _orthogonal(direction):
    return None if direction is None else direction.orthogonal
