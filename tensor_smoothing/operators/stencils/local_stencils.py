"""
Finite-difference stencils for the local diffusion kernel.

Each stencil approximates the gradient operator G used in ``G'DG``. In a
stencil name the first digit is the number of samples used along the
derivative direction and the second the number of samples in the
orthogonal direction. Names refer to the 2D stencils; most have a natural
3D extension.

A stencil is described entirely by data:

- taps: offsets relative to the evaluation sample, in component order
  (component 1 is the fastest array axis), and a weight vector giving the
  contribution of the tapped sample to each gradient component
- the evaluation range per axis, ``[lo, n - hi)``
- the stride of the outer-axis sweep (the width of the tap footprint, so
  that evaluation points one stride apart never write the same samples)
- whether a tensor field is used (D21 is isotropic only)
- the dimensionalities for which the stencil is defined

Stencil Coefficients:
    D21: two-point difference ``x[i] - x[i-1]`` per axis
    D22: 2x2 cell differences, averaged across the cell
    D24: 2x4, p = 0.18 (tuned for high anisotropy)
    D33: 3x3 Scharr weights, p = 0.182962 (2D) and 0.174654 (3D)
    D71: 7-point derivative (0.830893, -0.227266, 0.042877)
    D91: 9-point derivative (0.8947167, -0.3153471, 0.1096895, -0.0259358)

Gather and scatter use the same weights, so ``G'DG`` is self-adjoint
and positive semidefinite for any positive-semidefinite D.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from functools import cache
from typing import TYPE_CHECKING

import numpy as np

from tensor_smoothing.utils.exceptions import UnsupportedStencilError

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray


C71 = (0.830893, -0.227266, 0.042877)
C91 = (0.8947167, -0.3153471, 0.1096895, -0.0259358)
P24 = 0.18
P33_2D = 0.182962
P33_3D = 0.174654


@dataclass(frozen=True)
class StencilTaps:
    """
    Tap offsets and gradient weights for one dimensionality.

    Attributes:
        offsets: Integer array (ntap, ndim), component order
        weights: Float array (ntap, ndim); weights[t, j] multiplies the
            tapped sample in gradient component j
    """

    offsets: NDArray
    weights: NDArray

    @property
    def ntap(self) -> int:
        return len(self.offsets)

    @property
    def ndim(self) -> int:
        return self.offsets.shape[1]

    def axis_offsets(self) -> NDArray:
        """Offsets in numpy axis order (outermost axis first)."""
        return self.offsets[:, ::-1]


@dataclass(frozen=True)
class StencilSpec:
    """Immutable description of a stencil."""

    name: str
    dims: tuple[int, ...]
    margin_lo: int
    margin_hi: int
    stride: int
    tensor_aware: bool
    builder: Callable[[int], StencilTaps] = field(repr=False, compare=False)

    def supports(self, ndim: int) -> bool:
        return ndim in self.dims

    def check_dimension(self, ndim: int, component: str | None = None):
        if not self.supports(ndim):
            raise UnsupportedStencilError(self.name, ndim, self.dims, component=component)

    def taps(self, ndim: int) -> StencilTaps:
        """Taps for arrays of rank ``ndim``."""
        self.check_dimension(ndim)
        return _cached_taps(self.name, ndim)

    def evaluation_range(self, n: int) -> tuple[int, int]:
        """Half-open range ``[start, stop)`` of evaluation indices along an axis of length n."""
        return self.margin_lo, max(self.margin_lo, n - self.margin_hi)


# =============================================================================
# Tap builders
# =============================================================================


def _taps_from(entries: dict[tuple[int, ...], list[float]]) -> StencilTaps:
    items = [(offset, weights) for offset, weights in entries.items() if any(w != 0.0 for w in weights)]
    offsets = np.array([offset for offset, _ in items], dtype=np.intp)
    weights = np.array([weights for _, weights in items], dtype=np.float64)
    return StencilTaps(offsets=offsets, weights=weights)


def _build_d21(ndim: int) -> StencilTaps:
    entries: dict[tuple[int, ...], list[float]] = {(0,) * ndim: [1.0] * ndim}
    for j in range(ndim):
        offset = tuple(-1 if k == j else 0 for k in range(ndim))
        entries[offset] = [-1.0 if k == j else 0.0 for k in range(ndim)]
    return _taps_from(entries)


def _build_d22(ndim: int) -> StencilTaps:
    scale = 1.0 / 2 ** (ndim - 1)
    entries = {}
    for offset in itertools.product((-1, 0), repeat=ndim):
        entries[offset] = [scale if o == 0 else -scale for o in offset]
    return _taps_from(entries)


def _build_d24(ndim: int) -> StencilTaps:
    a = 0.5 * (1.0 + P24)
    b = -0.5 * P24
    across = {-2: b, -1: a, 0: a, 1: b}
    entries: dict[tuple[int, ...], list[float]] = {}
    for offset in itertools.product((-2, -1, 0, 1), repeat=ndim):
        weights = []
        for j, oj in enumerate(offset):
            if oj not in (-1, 0):
                weights.append(0.0)
                continue
            w = 1.0 if oj == 0 else -1.0
            for k, ok in enumerate(offset):
                if k != j:
                    w *= across[ok]
            weights.append(w)
        entries[offset] = weights
    return _taps_from(entries)


def _build_d33(ndim: int) -> StencilTaps:
    p = P33_3D if ndim == 3 else P33_2D
    across = {-1: p, 0: 1.0 - 2.0 * p, 1: p}
    entries: dict[tuple[int, ...], list[float]] = {}
    for offset in itertools.product((-1, 0, 1), repeat=ndim):
        weights = []
        for j, oj in enumerate(offset):
            if oj == 0:
                weights.append(0.0)
                continue
            w = 0.5 * oj
            for k, ok in enumerate(offset):
                if k != j:
                    w *= across[ok]
            weights.append(w)
        entries[offset] = weights
    return _taps_from(entries)


def _build_axial(coefficients: tuple[float, ...]) -> Callable[[int], StencilTaps]:
    def build(ndim: int) -> StencilTaps:
        entries: dict[tuple[int, ...], list[float]] = {}
        for j in range(ndim):
            for k, ck in enumerate(coefficients, start=1):
                for sign in (1, -1):
                    offset = tuple(sign * k if m == j else 0 for m in range(ndim))
                    entries[offset] = [sign * ck if m == j else 0.0 for m in range(ndim)]
        return _taps_from(entries)

    return build


# =============================================================================
# Stencil enumeration
# =============================================================================


class Stencil(Enum):
    """The closed set of gradient stencils."""

    D21 = StencilSpec("D21", (1, 2, 3), 0, 0, 2, False, _build_d21)
    D22 = StencilSpec("D22", (1, 2, 3), 1, 0, 2, True, _build_d22)
    D24 = StencilSpec("D24", (1, 2), 1, 0, 4, True, _build_d24)
    D33 = StencilSpec("D33", (1, 2, 3), 1, 1, 3, True, _build_d33)
    D71 = StencilSpec("D71", (1, 2, 3), 0, 0, 7, True, _build_axial(C71))
    D91 = StencilSpec("D91", (1, 2), 0, 0, 9, True, _build_axial(C91))

    @property
    def spec(self) -> StencilSpec:
        return self.value

    @classmethod
    def from_name(cls, name: str | Stencil) -> Stencil:
        """Look up a stencil by name (case insensitive) or pass a member through."""
        if isinstance(name, Stencil):
            return name
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown stencil {name!r}; expected one of {[s.name for s in cls]}") from None

    def __str__(self) -> str:
        return self.name


@cache
def _cached_taps(name: str, ndim: int) -> StencilTaps:
    return Stencil[name].spec.builder(ndim)


def get_stencil_taps(stencil: Stencil | str, ndim: int) -> StencilTaps:
    """
    Get tap offsets and gradient weights of a stencil.

    Args:
        stencil: Stencil member or name
        ndim: Array rank (1, 2 or 3)

    Returns:
        StencilTaps with offsets in component order

    Raises:
        UnsupportedStencilError: If the stencil is not defined for ``ndim``

    Example:
        >>> taps = get_stencil_taps(Stencil.D22, 2)
        >>> taps.ntap
        4
    """
    return Stencil.from_name(stencil).spec.taps(ndim)
