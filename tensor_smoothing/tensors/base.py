"""
Tensor-field capability for the local diffusion kernel.

A tensor field supplies, for every sample of an image, the upper triangle
of a symmetric positive-semidefinite matrix:

- 2D: ``(d11, d12, d22)``
- 3D: ``(d11, d12, d13, d22, d23, d33)``

Component 1 always refers to the fastest array axis (the last numpy axis),
so for a 2D image indexed ``image[i2, i1]`` the coefficient ``d11`` couples
differences along ``i1``. Indices passed to ``get_tensor`` follow numpy
axis order: ``(i2, i1)`` or ``(i3, i2, i1)``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np

from tensor_smoothing.utils.exceptions import DimensionMismatchError

if TYPE_CHECKING:
    from numpy.typing import NDArray


class _TensorField(ABC):
    """Shared behavior of 2D and 3D tensor fields."""

    #: Number of stored coefficients (upper triangle).
    ncoef: int = 0

    #: Array rank the field applies to.
    ndim: int = 0

    @property
    @abstractmethod
    def shape(self) -> tuple[int, ...] | None:
        """Sample shape of the field, or None for fields constant everywhere."""

    @abstractmethod
    def get_tensor(self, index: tuple[int, ...], out: NDArray | None = None) -> NDArray:
        """
        Get the tensor coefficients at one sample.

        Args:
            index: Sample index in numpy axis order
            out: Optional array of length ``ncoef`` to fill

        Returns:
            The filled coefficient array
        """

    def get_tensors(self, out: NDArray | None = None) -> NDArray:
        """
        Get coefficients for all samples as an array of shape ``(*shape, ncoef)``.

        The default implementation calls ``get_tensor`` per sample;
        concrete fields override it with vectorized code.
        """
        shape = self.shape
        if out is None:
            if shape is None:
                raise ValueError(f"{type(self).__name__} has no shape; pass an output array")
            out = np.empty((*shape, self.ncoef))
        sample_shape = out.shape[:-1]
        for index in np.ndindex(*sample_shape):
            self.get_tensor(index, out[index])
        return out

    def coefficients(self, shape: tuple[int, ...]) -> NDArray:
        """
        Coefficients for an image of the given shape.

        Returns an array broadcastable against ``(*shape, ncoef)``. Fields
        with a shape must match it exactly.
        """
        if self.shape is not None and tuple(self.shape) != tuple(shape):
            raise DimensionMismatchError(
                array_name="tensors",
                provided_shape=tuple(self.shape),
                expected_shape=tuple(shape),
                context="tensor field must cover every sample of the image",
            )
        return self.get_tensors(np.empty((*shape, self.ncoef)))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(shape={self.shape})"


class Tensors2(_TensorField):
    """Tensor field for 2D images: coefficients ``(d11, d12, d22)``."""

    ncoef = 3
    ndim = 2


class Tensors3(_TensorField):
    """Tensor field for 3D images: coefficients ``(d11, d12, d13, d22, d23, d33)``."""

    ncoef = 6
    ndim = 3


# =============================================================================
# Identity fields
# =============================================================================


class _IdentityMixin:
    _coefficients: tuple[float, ...] = ()

    @property
    def shape(self) -> None:
        return None

    def get_tensor(self, index, out=None):
        if out is None:
            out = np.empty(len(self._coefficients))
        out[...] = self._coefficients
        return out

    def get_tensors(self, out=None):
        if out is None:
            raise ValueError(f"{type(self).__name__} has no shape; pass an output array")
        out[...] = self._coefficients
        return out

    def coefficients(self, shape):
        # Shape (1, ..., 1, ncoef) broadcasts against any image
        return np.asarray(self._coefficients, dtype=np.float64).reshape((1,) * len(shape) + (-1,))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class IdentityTensors2(_IdentityMixin, Tensors2):
    """Constant identity tensor field for 2D images."""

    _coefficients = (1.0, 0.0, 1.0)


class IdentityTensors3(_IdentityMixin, Tensors3):
    """Constant identity tensor field for 3D images."""

    _coefficients = (1.0, 0.0, 0.0, 1.0, 0.0, 1.0)


IDENTITY_TENSORS2 = IdentityTensors2()
IDENTITY_TENSORS3 = IdentityTensors3()


# =============================================================================
# Array-backed fields
# =============================================================================


class _ArrayTensors:
    ncoef: int
    ndim: int

    def __init__(self, *components: NDArray):
        arrays = [np.asarray(component, dtype=np.float64) for component in components]
        shape = arrays[0].shape
        if len(shape) != self.ndim:
            raise DimensionMismatchError(
                array_name="d11",
                provided_shape=shape,
                expected_shape=(0,) * self.ndim,
                context=f"{type(self).__name__} needs {self.ndim}D coefficient arrays",
            )
        for name, array in zip(self._names, arrays, strict=True):
            if array.shape != shape:
                raise DimensionMismatchError(array_name=name, provided_shape=array.shape, expected_shape=shape)
        self._d = np.stack(arrays, axis=-1)

    @classmethod
    def from_array(cls, coefficients: NDArray):
        """Build from an array of shape ``(*shape, ncoef)``."""
        coefficients = np.asarray(coefficients, dtype=np.float64)
        if coefficients.ndim != cls.ndim + 1 or coefficients.shape[-1] != cls.ncoef:
            raise DimensionMismatchError(
                array_name="coefficients",
                provided_shape=coefficients.shape,
                expected_shape=(*coefficients.shape[: cls.ndim], cls.ncoef),
            )
        return cls(*np.moveaxis(coefficients, -1, 0))

    @property
    def shape(self) -> tuple[int, ...]:
        return self._d.shape[:-1]

    def get_tensor(self, index, out=None):
        if out is None:
            out = np.empty(self.ncoef)
        out[...] = self._d[tuple(index)]
        return out

    def get_tensors(self, out=None):
        if out is None:
            return self._d.copy()
        out[...] = self._d
        return out

    def coefficients(self, shape):
        if self.shape != tuple(shape):
            raise DimensionMismatchError(array_name="tensors", provided_shape=self.shape, expected_shape=tuple(shape))
        return self._d


class ArrayTensors2(_ArrayTensors, Tensors2):
    """2D tensor field stored as coefficient arrays ``d11, d12, d22``."""

    _names = ("d11", "d12", "d22")

    def __init__(self, d11: NDArray, d12: NDArray, d22: NDArray):
        super().__init__(d11, d12, d22)


class ArrayTensors3(_ArrayTensors, Tensors3):
    """3D tensor field stored as coefficient arrays ``d11, d12, d13, d22, d23, d33``."""

    _names = ("d11", "d12", "d13", "d22", "d23", "d33")

    def __init__(self, d11: NDArray, d12: NDArray, d13: NDArray, d22: NDArray, d23: NDArray, d33: NDArray):
        super().__init__(d11, d12, d13, d22, d23, d33)


def identity_for(ndim: int) -> Tensors2 | Tensors3 | None:
    """Identity sentinel for an image rank (None for 1D)."""
    if ndim == 2:
        return IDENTITY_TENSORS2
    if ndim == 3:
        return IDENTITY_TENSORS3
    return None
