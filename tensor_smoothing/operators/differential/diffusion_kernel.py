"""
Local diffusion kernel ``y += c·s·G'DG·x``.

G is a finite-difference gradient defined by a stencil, G' its adjoint
and D a field of symmetric positive-semidefinite tensors. The kernel
accumulates into its output, so given ``y = 0`` it computes ``G'DG·x`` and
given ``y = x`` it computes ``(I + G'DG)·x``. It is the matrix-free
operator inside the conjugate-gradient smoothing filters.

Mathematical Background:
    For each evaluation sample i the stencil gathers gradient components

        g_j(i) = Σ_t w_tj · x[clamp(i + o_t)]

    multiplies by the scaled local tensor

        f(i) = c·s(i)·D(i)·g(i)

    and scatters back with the same weights

        y[clamp(i + o_t)] += Σ_j w_tj · f_j(i)

    Taps outside the array are clamped to the nearest edge sample, which
    corresponds to zero-slope extrapolation. Because gather and scatter
    share weights, the accumulated operator is exactly G'(c·s·D)G.

Parallelism:
    Evaluation indices along the outermost axis are split into ``stride``
    interleaved sweeps. Evaluation rows in the same sweep are one stride
    apart, wider than any tap footprint, so blocks of one sweep write
    disjoint samples and run concurrently without locks. Sweeps run one
    after another.
"""

from __future__ import annotations

import time
from functools import partial
from typing import TYPE_CHECKING

import numpy as np
from scipy.sparse.linalg import LinearOperator

from tensor_smoothing.operators.stencils import Stencil, StencilTaps
from tensor_smoothing.tensors.base import identity_for
from tensor_smoothing.utils.exceptions import (
    ArrayAliasingError,
    ConfigurationError,
    DimensionMismatchError,
    validate_image_arrays,
    validate_parameter_value,
)
from tensor_smoothing.utils.logging import get_logger, log_kernel_pass
from tensor_smoothing.utils.parallel import interleaved_sweeps, run_sweeps

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from tensor_smoothing.tensors import Tensors2, Tensors3

logger = get_logger(__name__)

_COMPONENT = "LocalDiffusionKernel"


class LocalDiffusionKernel:
    """
    Fused, self-adjoint local diffusion kernel.

    Attributes:
        stencil: Gradient stencil (default D22)
        npass: Number of times the kernel is applied per call
        parallel: Whether outer-axis sweeps are dispatched to a thread pool
        max_workers: Thread count for parallel sweeps (None for CPU count)

    Usage:
        >>> kernel = LocalDiffusionKernel(Stencil.D71)
        >>> y = np.zeros_like(x)
        >>> kernel.apply(x, y, tensors, c=2.0)   # y = 2·G'DG·x
    """

    def __init__(
        self,
        stencil: Stencil | str = Stencil.D22,
        npass: int = 1,
        parallel: bool = True,
        max_workers: int | None = None,
    ):
        try:
            self._stencil = Stencil.from_name(stencil)
        except (ValueError, AttributeError):
            raise ConfigurationError(
                "stencil",
                stencil,
                component=_COMPONENT,
                suggested_action=f"Use one of {', '.join(Stencil.__members__)}",
            ) from None
        validate_parameter_value(npass, "npass", expected_type=int, valid_range=(0, None), component=_COMPONENT)
        if max_workers is not None:
            validate_parameter_value(
                max_workers, "max_workers", expected_type=int, valid_range=(0, None), component=_COMPONENT
            )
        self._npass = npass
        self._parallel = bool(parallel)
        self._max_workers = max_workers
        logger.debug(f"Created {self!r}")

    @property
    def stencil(self) -> Stencil:
        return self._stencil

    @property
    def npass(self) -> int:
        return self._npass

    @property
    def parallel(self) -> bool:
        return self._parallel

    @property
    def max_workers(self) -> int | None:
        return self._max_workers

    def __repr__(self) -> str:
        return f"LocalDiffusionKernel(stencil={self._stencil.name}, npass={self._npass}, parallel={self._parallel})"

    # =========================================================================
    # Public operations
    # =========================================================================

    def apply(
        self,
        x: NDArray,
        y: NDArray,
        tensors: Tensors2 | Tensors3 | None = None,
        c: float = 1.0,
        s: NDArray | None = None,
    ):
        """
        Accumulate ``y += c·s·G'DG·x``.

        Args:
            x: Input array (rank 1, 2 or 3)
            y: Output array, same shape as x, must not share memory with x
            tensors: Tensor field; None for the identity tensor. Must be None for 1D.
            c: Scalar gain
            s: Optional per-sample scale factors, same shape as x

        Raises:
            UnsupportedStencilError: If the stencil has no version for x.ndim
            DimensionMismatchError: If shapes of x, y, s or tensors differ
            ArrayAliasingError: If y shares memory with x
        """
        coefs = self._prepare(x, y, tensors, s)
        for ipass in range(self._npass):
            start = time.perf_counter()
            if ipass > 0:
                x = y.copy()
            self._apply_once(x, y, coefs, float(c), s)
            log_kernel_pass(logger, self._stencil.name, x.shape, ipass, self._npass, time.perf_counter() - start)

    def as_operator(
        self,
        shape: tuple[int, ...],
        tensors: Tensors2 | Tensors3 | None = None,
        c: float = 1.0,
        s: NDArray | None = None,
        shift: float = 0.0,
    ) -> LocalDiffusionOperator:
        """
        Wrap the kernel as a scipy LinearOperator computing ``shift·x + K·x``.

        With ``shift=1`` the operator is the smoothing system matrix
        ``I + c·s·G'DG`` and can be handed to ``scipy.sparse.linalg.cg``.
        """
        return LocalDiffusionOperator(self, shape, tensors=tensors, c=c, s=s, shift=shift)

    def diagonal(
        self,
        shape: tuple[int, ...],
        tensors: Tensors2 | Tensors3 | None = None,
        c: float = 1.0,
        s: NDArray | None = None,
    ) -> NDArray:
        """
        Exact diagonal of ``c·s·G'DG`` for one pass of this kernel's stencil.

        Taps of one evaluation sample that clamp onto the same array sample
        are merged before the quadratic form is taken, so edge samples get
        their true diagonal entries.

        Returns:
            Array of the given shape
        """
        shape = tuple(shape)
        spec = self._stencil.spec
        ndim = len(shape)
        if ndim not in (1, 2, 3):
            raise DimensionMismatchError(
                array_name="shape", provided_shape=shape, expected_shape=(), component=_COMPONENT
            )
        spec.check_dimension(ndim, component=_COMPONENT)
        if s is not None and s.shape != shape:
            raise DimensionMismatchError(
                array_name="s", provided_shape=s.shape, expected_shape=shape, component=_COMPONENT
            )
        coefs = self._coefficients(tensors, shape)
        taps = spec.taps(ndim)
        out = np.zeros(shape)

        index = _evaluation_indices(spec, shape)
        if index is None:
            return out
        mesh = np.ix_(*index)
        clipped = _clipped_indices(taps, index, shape)
        apply_d = partial(self._scaled_tensor, index=index, mesh=mesh, shape=shape, coefs=coefs, c=float(c), s=s)

        for t in range(taps.ntap):
            first = None
            u = [np.zeros(()) for _ in range(ndim)]
            for t2 in range(taps.ntap):
                same = _same_target(clipped, t, t2, ndim)
                if same is None:
                    continue
                if t2 < t:
                    first = ~same if first is None else first & ~same
                for j in range(ndim):
                    if taps.weights[t2, j] != 0.0:
                        u[j] = u[j] + taps.weights[t2, j] * same
            du = apply_d(u)
            quad = sum(u[j] * du[j] for j in range(ndim))
            quad = np.broadcast_to(quad, tuple(len(i) for i in index))
            if first is not None:
                quad = np.where(first, quad, 0.0)
            target = np.ix_(*[clipped[a][t] for a in range(ndim)])
            np.add.at(out, target, quad)

        return out

    # =========================================================================
    # Internals
    # =========================================================================

    def _prepare(self, x, y, tensors, s) -> NDArray | None:
        validate_image_arrays(x, y, s, component=_COMPONENT)
        self._stencil.spec.check_dimension(x.ndim, component=_COMPONENT)
        if np.shares_memory(x, y):
            raise ArrayAliasingError("x", "y", component=_COMPONENT)
        return self._coefficients(tensors, x.shape)

    def _coefficients(self, tensors, shape) -> NDArray | None:
        ndim = len(shape)
        if ndim == 1:
            if tensors is not None:
                raise ConfigurationError(
                    "tensors",
                    tensors,
                    component=_COMPONENT,
                    reason="1D kernels use only c and s; pass tensors=None",
                )
            return None
        if not self._stencil.spec.tensor_aware:
            return None
        if tensors is None:
            tensors = identity_for(ndim)
        if tensors.ndim != ndim:
            raise DimensionMismatchError(
                array_name="tensors",
                provided_shape=(0,) * tensors.ndim,
                expected_shape=tuple(shape),
                component=_COMPONENT,
                context=f"{type(tensors).__name__} is a {tensors.ndim}D tensor field",
            )
        return tensors.coefficients(tuple(shape))

    def _apply_once(self, x, y, coefs, c, s):
        spec = self._stencil.spec
        index = _evaluation_indices(spec, x.shape)
        if index is None:
            return
        taps = spec.taps(x.ndim)
        body = partial(self._apply_rows, inner=index[1:], x=x, y=y, taps=taps, coefs=coefs, c=c, s=s)

        outer = index[0]
        if x.ndim == 1 or not self._parallel:
            body(outer)
            return
        sweeps = interleaved_sweeps(int(outer[0]), int(outer[-1]) + 1, spec.stride)
        run_sweeps(sweeps, body, parallel=True, max_workers=self._max_workers)

    def _apply_rows(self, rows, inner, x, y, taps: StencilTaps, coefs, c, s):
        """Gather, scale and scatter for a block of outer-axis evaluation rows."""
        ndim = x.ndim
        shape = x.shape
        index = [rows, *inner]
        mesh = np.ix_(*index)
        clipped = _clipped_indices(taps, index, shape)
        targets = [np.ix_(*[clipped[a][t] for a in range(ndim)]) for t in range(taps.ntap)]

        g: list = [None] * ndim
        for t, target in enumerate(targets):
            xt = x[target]
            for j in range(ndim):
                w = taps.weights[t, j]
                if w != 0.0:
                    g[j] = w * xt if g[j] is None else g[j] + w * xt

        f = self._scaled_tensor(g, index=index, mesh=mesh, shape=shape, coefs=coefs, c=c, s=s)

        for t, target in enumerate(targets):
            contribution = None
            for j in range(ndim):
                w = taps.weights[t, j]
                if w != 0.0:
                    contribution = w * f[j] if contribution is None else contribution + w * f[j]
            np.add.at(y, target, contribution)

    def _scaled_tensor(self, g, index, mesh, shape, coefs, c, s) -> list:
        """Multiply gradient components by ``c·s·D`` at the evaluation samples."""
        ndim = len(shape)

        if not self._stencil.spec.tensor_aware:
            # Isotropic: scale factors averaged across each difference edge
            if s is None:
                return [c * gj for gj in g]
            s0 = s[mesh]
            out = []
            for j in range(ndim):
                axis = ndim - 1 - j
                shifted = list(index)
                shifted[axis] = np.maximum(index[axis] - 1, 0)
                out.append(c * 0.5 * (s0 + s[np.ix_(*shifted)]) * g[j])
            return out

        cs = c if s is None else c * s[mesh]
        if coefs is None:
            return [cs * gj for gj in g]

        d = coefs[mesh] if coefs.shape[:-1] == tuple(shape) else coefs
        if ndim == 2:
            d11, d12, d22 = (d[..., k] for k in range(3))
            g1, g2 = g
            return [cs * (d11 * g1 + d12 * g2), cs * (d12 * g1 + d22 * g2)]

        d11, d12, d13, d22, d23, d33 = (d[..., k] for k in range(6))
        g1, g2, g3 = g
        return [
            cs * (d11 * g1 + d12 * g2 + d13 * g3),
            cs * (d12 * g1 + d22 * g2 + d23 * g3),
            cs * (d13 * g1 + d23 * g2 + d33 * g3),
        ]


# =============================================================================
# Index helpers
# =============================================================================


def _evaluation_indices(spec, shape) -> list[NDArray] | None:
    """Evaluation indices per numpy axis, or None if any range is empty."""
    index = []
    for n in shape:
        start, stop = spec.evaluation_range(n)
        if start >= stop:
            return None
        index.append(np.arange(start, stop))
    return index


def _clipped_indices(taps: StencilTaps, index, shape) -> list[list[NDArray]]:
    """``clipped[a][t]``: clamped target indices along numpy axis a for tap t."""
    offsets = taps.axis_offsets()
    return [
        [np.clip(index[a] + offsets[t, a], 0, shape[a] - 1) for t in range(taps.ntap)] for a in range(len(shape))
    ]


def _same_target(clipped, t, t2, ndim) -> NDArray | None:
    """Boolean mesh where taps t and t2 land on the same sample (None if nowhere)."""
    same = None
    for a in range(ndim):
        eq = clipped[a][t] == clipped[a][t2]
        if not eq.any():
            return None
        view = [1] * ndim
        view[a] = -1
        eq = eq.reshape(view)
        same = eq if same is None else same & eq
    return same


# =============================================================================
# LinearOperator view
# =============================================================================


class LocalDiffusionOperator(LinearOperator):
    """
    scipy LinearOperator computing ``shift·x + c·s·G'DG·x`` on flattened arrays.

    The operator is symmetric, so ``rmatvec`` equals ``matvec``.

    Usage:
        >>> A = kernel.as_operator(x.shape, tensors, c=4.0, shift=1.0)
        >>> y, info = scipy.sparse.linalg.cg(A, x.ravel())
    """

    def __init__(
        self,
        kernel: LocalDiffusionKernel,
        field_shape: tuple[int, ...],
        tensors: Tensors2 | Tensors3 | None = None,
        c: float = 1.0,
        s: NDArray | None = None,
        shift: float = 0.0,
    ):
        self.kernel = kernel
        self.field_shape = tuple(field_shape)
        self.tensors = tensors
        self.c = float(c)
        self.s = s
        self.shift = float(shift)
        N = int(np.prod(self.field_shape))
        super().__init__(shape=(N, N), dtype=np.float64)

    def _matvec(self, x_flat: NDArray) -> NDArray:
        x = np.asarray(x_flat, dtype=np.float64).reshape(self.field_shape)
        y = self.shift * x
        self.kernel.apply(x, y, self.tensors, self.c, self.s)
        return y.ravel()

    def _rmatvec(self, x_flat: NDArray) -> NDArray:
        return self._matvec(x_flat)

    def __call__(self, x: NDArray) -> NDArray:
        """Apply to an array of ``field_shape`` (or flattened), preserving shape."""
        if x.ndim == 1 and len(self.field_shape) != 1:
            return self._matvec(x)
        if x.shape != self.field_shape:
            raise DimensionMismatchError(
                array_name="x", provided_shape=x.shape, expected_shape=self.field_shape, component=_COMPONENT
            )
        return self._matvec(x.ravel()).reshape(self.field_shape)

    def __repr__(self) -> str:
        return (
            f"LocalDiffusionOperator(stencil={self.kernel.stencil.name}, field_shape={self.field_shape}, "
            f"c={self.c}, shift={self.shift})"
        )
