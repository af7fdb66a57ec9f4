"""
Tensor fields stored as eigenvectors and eigenvalues.

``EigenTensors2`` stores the unit eigenvector ``u`` and eigenvalues
``au, av``; the second eigenvector is ``v = (u2, -u1)``, so

    D = au·u u' + av·v v'

``EigenTensors3`` stores unit eigenvectors ``u`` and ``w`` through their
first two components (the third is non-negative and recomputed from unit
length), eigenvalues ``au, av, aw``, and uses ``v = w × u``.

Storing eigenvalues separately lets consumers such as the local semblance
filter temporarily select directions by overriding eigenvalues with 0/1.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

import numpy as np

from tensor_smoothing.utils.exceptions import DimensionMismatchError

from .base import Tensors2, Tensors3

if TYPE_CHECKING:
    from collections.abc import Iterator

    from numpy.typing import ArrayLike, NDArray


def _as_field(value: ArrayLike, shape: tuple[int, ...], name: str) -> NDArray:
    array = np.asarray(value, dtype=np.float64)
    if array.ndim == 0:
        return np.full(shape, float(array))
    if array.shape != shape:
        raise DimensionMismatchError(array_name=name, provided_shape=array.shape, expected_shape=shape)
    return array.copy()


def _third_component(c1: NDArray, c2: NDArray) -> NDArray:
    return np.sqrt(np.maximum(0.0, 1.0 - c1 * c1 - c2 * c2))


class EigenTensors2(Tensors2):
    """
    2D tensor field ``D = au·u u' + av·v v'`` with ``v = (u2, -u1)``.

    Args:
        u1: Component 1 (fast axis) of the unit eigenvector u
        u2: Component 2 of u
        au: Eigenvalue for u (scalar or array)
        av: Eigenvalue for v (scalar or array)
    """

    def __init__(self, u1: ArrayLike, u2: ArrayLike, au: ArrayLike = 1.0, av: ArrayLike = 1.0):
        u1 = np.asarray(u1, dtype=np.float64)
        if u1.ndim != 2:
            raise DimensionMismatchError(array_name="u1", provided_shape=u1.shape, expected_shape=(0, 0))
        self._shape = u1.shape
        self._u1 = u1.copy()
        self._u2 = _as_field(u2, self._shape, "u2")
        self._au = _as_field(au, self._shape, "au")
        self._av = _as_field(av, self._shape, "av")

    @classmethod
    def from_copy(cls, other: EigenTensors2) -> EigenTensors2:
        return cls(other._u1, other._u2, other._au, other._av)

    @property
    def shape(self) -> tuple[int, int]:
        return self._shape

    def get_tensor(self, index, out=None):
        if out is None:
            out = np.empty(3)
        index = tuple(index)
        u1, u2 = self._u1[index], self._u2[index]
        au, av = self._au[index], self._av[index]
        auv = au - av
        out[0] = auv * u1 * u1 + av
        out[1] = auv * u1 * u2
        out[2] = auv * u2 * u2 + av
        return out

    def get_tensors(self, out=None):
        if out is None:
            out = np.empty((*self._shape, 3))
        auv = self._au - self._av
        out[..., 0] = auv * self._u1 * self._u1 + self._av
        out[..., 1] = auv * self._u1 * self._u2
        out[..., 2] = auv * self._u2 * self._u2 + self._av
        return out

    def get_eigenvalues(self) -> tuple[NDArray, NDArray]:
        """Copies of the eigenvalue arrays ``(au, av)``."""
        return self._au.copy(), self._av.copy()

    def set_eigenvalues(self, au: ArrayLike, av: ArrayLike):
        """Set eigenvalues for all samples; scalars are broadcast."""
        self._au[...] = _as_field(au, self._shape, "au")
        self._av[...] = _as_field(av, self._shape, "av")

    def get_eigenvector_u(self, index) -> NDArray:
        index = tuple(index)
        return np.array([self._u1[index], self._u2[index]])

    def get_eigenvector_v(self, index) -> NDArray:
        index = tuple(index)
        return np.array([self._u2[index], -self._u1[index]])

    def set_tensor(self, index, a: ArrayLike):
        """
        Set one tensor from its coefficients ``(a11, a12, a22)``.

        The tensor is eigendecomposed so that ``au >= av``; negative
        eigenvalues are clipped to zero.
        """
        a11, a12, a22 = (float(value) for value in a)
        evals, evecs = np.linalg.eigh(np.array([[a11, a12], [a12, a22]]))
        index = tuple(index)
        self._u1[index], self._u2[index] = evecs[:, 1]
        self._au[index] = max(evals[1], 0.0)
        self._av[index] = max(evals[0], 0.0)

    def scale(self, s: ArrayLike):
        """Scale eigenvalues by factors ``s`` (scalar or array)."""
        s = _as_field(s, self._shape, "s")
        self._au *= s
        self._av *= s

    def invert(self):
        """Invert eigenvalues. Zero eigenvalues produce infinities."""
        with np.errstate(divide="ignore"):
            self._au = 1.0 / self._au
            self._av = 1.0 / self._av

    def invert_structure(self, p0: float, p1: float):
        """
        Invert structure tensors so that ``0 < au <= av <= 1``.

        Eigenvalues are first made consistent (``av >= 0``, ``au >= av``)
        and shifted by a small fraction of the largest. With ``am`` the
        smallest ``av``, the inverted eigenvalues are ``av = (am/av)**p0``
        and ``au = av · (av/au)**p1``. ``p0`` emphasizes amplitude and
        ``p1`` linearity.
        """
        av = np.maximum(self._av, 0.0)
        au = np.maximum(self._au, av)
        amax = float(au.max())
        amin = float(av.min())
        eps32 = np.finfo(np.float32)
        aeps = max(float(eps32.tiny) * 100.0, float(eps32.eps) * amax)
        amin += aeps
        au = au + aeps
        av = av + aeps
        a0 = (amin / av) ** p0
        a1 = (av / au) ** p1
        self._au = a0 * a1
        self._av = a0


class EigenTensors3(Tensors3):
    """
    3D tensor field ``D = au·u u' + av·v v' + aw·w w'`` with ``v = w × u``.

    Args:
        u1, u2: Components 1 and 2 of the unit eigenvector u (u3 >= 0 computed)
        w1, w2: Components 1 and 2 of the unit eigenvector w (w3 >= 0 computed)
        au, av, aw: Eigenvalues (scalars or arrays)
    """

    def __init__(
        self,
        u1: ArrayLike,
        u2: ArrayLike,
        w1: ArrayLike,
        w2: ArrayLike,
        au: ArrayLike = 1.0,
        av: ArrayLike = 1.0,
        aw: ArrayLike = 1.0,
    ):
        u1 = np.asarray(u1, dtype=np.float64)
        if u1.ndim != 3:
            raise DimensionMismatchError(array_name="u1", provided_shape=u1.shape, expected_shape=(0, 0, 0))
        self._shape = u1.shape
        self._u1 = u1.copy()
        self._u2 = _as_field(u2, self._shape, "u2")
        self._w1 = _as_field(w1, self._shape, "w1")
        self._w2 = _as_field(w2, self._shape, "w2")
        self._au = _as_field(au, self._shape, "au")
        self._av = _as_field(av, self._shape, "av")
        self._aw = _as_field(aw, self._shape, "aw")

    @property
    def shape(self) -> tuple[int, int, int]:
        return self._shape

    def _eigenvectors(self, index=...):
        u1, u2 = self._u1[index], self._u2[index]
        w1, w2 = self._w1[index], self._w2[index]
        u3 = _third_component(u1, u2)
        w3 = _third_component(w1, w2)
        v1 = w2 * u3 - w3 * u2
        v2 = w3 * u1 - w1 * u3
        v3 = w1 * u2 - w2 * u1
        return (u1, u2, u3), (v1, v2, v3), (w1, w2, w3)

    def _fill(self, out, index):
        u, v, w = self._eigenvectors(index)
        au, av, aw = self._au[index], self._av[index], self._aw[index]
        for k, (i, j) in enumerate(((0, 0), (0, 1), (0, 2), (1, 1), (1, 2), (2, 2))):
            out[..., k] = au * u[i] * u[j] + av * v[i] * v[j] + aw * w[i] * w[j]
        return out

    def get_tensor(self, index, out=None):
        if out is None:
            out = np.empty(6)
        return self._fill(out, tuple(index))

    def get_tensors(self, out=None):
        if out is None:
            out = np.empty((*self._shape, 6))
        return self._fill(out, ...)

    def get_eigenvalues(self) -> tuple[NDArray, NDArray, NDArray]:
        """Copies of the eigenvalue arrays ``(au, av, aw)``."""
        return self._au.copy(), self._av.copy(), self._aw.copy()

    def set_eigenvalues(self, au: ArrayLike, av: ArrayLike, aw: ArrayLike):
        """Set eigenvalues for all samples; scalars are broadcast."""
        self._au[...] = _as_field(au, self._shape, "au")
        self._av[...] = _as_field(av, self._shape, "av")
        self._aw[...] = _as_field(aw, self._shape, "aw")

    def get_eigenvector_u(self, index) -> NDArray:
        return np.array(self._eigenvectors(tuple(index))[0])

    def get_eigenvector_v(self, index) -> NDArray:
        return np.array(self._eigenvectors(tuple(index))[1])

    def get_eigenvector_w(self, index) -> NDArray:
        return np.array(self._eigenvectors(tuple(index))[2])

    def set_tensor(self, index, a: ArrayLike):
        """
        Set one tensor from its coefficients ``(a11, a12, a13, a22, a23, a33)``.

        Eigenvalues are ordered ``au >= av >= aw`` and clipped to zero. The
        eigenvectors are flipped so that their third components are
        non-negative, matching the stored representation.
        """
        a11, a12, a13, a22, a23, a33 = (float(value) for value in a)
        matrix = np.array([[a11, a12, a13], [a12, a22, a23], [a13, a23, a33]])
        evals, evecs = np.linalg.eigh(matrix)
        u = evecs[:, 2] if evecs[2, 2] >= 0.0 else -evecs[:, 2]
        w = evecs[:, 0] if evecs[2, 0] >= 0.0 else -evecs[:, 0]
        index = tuple(index)
        self._u1[index], self._u2[index] = u[0], u[1]
        self._w1[index], self._w2[index] = w[0], w[1]
        self._au[index] = max(evals[2], 0.0)
        self._av[index] = max(evals[1], 0.0)
        self._aw[index] = max(evals[0], 0.0)

    def scale(self, s: ArrayLike):
        """Scale eigenvalues by factors ``s`` (scalar or array)."""
        s = _as_field(s, self._shape, "s")
        self._au *= s
        self._av *= s
        self._aw *= s

    def invert(self):
        """Invert eigenvalues. Zero eigenvalues produce infinities."""
        with np.errstate(divide="ignore"):
            self._au = 1.0 / self._au
            self._av = 1.0 / self._av
            self._aw = 1.0 / self._aw


@contextmanager
def override_eigenvalues(tensors: EigenTensors2 | EigenTensors3, values: tuple) -> Iterator[None]:
    """
    Temporarily replace the eigenvalues of a tensor field.

    The saved eigenvalues are restored on exit, including when the body
    raises. Not thread safe: callers sharing a field must serialize use.

    Usage:
        >>> with override_eigenvalues(tensors, (0.0, 1.0)):
        ...     smoother.apply(x, y, tensors)
    """
    saved = tensors.get_eigenvalues()
    tensors.set_eigenvalues(*values)
    try:
        yield
    finally:
        tensors.set_eigenvalues(*saved)
