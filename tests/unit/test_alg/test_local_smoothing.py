"""
Unit tests for LocalSmoothingFilter.

Tests the solve of (I + c·s·G'DG) y = x in 1D, 2D and 3D, the optional
diagonal preconditioner, the auxiliary S and L filters and validation of
filter parameters.
"""

import logging

import pytest

import numpy as np

from tensor_smoothing.alg import LocalSmoothingFilter
from tensor_smoothing.alg.numerical import conjugate_gradient
from tensor_smoothing.operators import LocalDiffusionKernel, Stencil
from tensor_smoothing.utils.exceptions import ConfigurationError, DimensionMismatchError, UnsupportedStencilError
from tensor_smoothing.utils.logging import get_logger


def _system_residual(kernel, x, y, tensors=None, c=1.0, s=None):
    """Norm of x - (I + c·s·G'DG)·y relative to the norm of x."""
    ay = y.copy()
    kernel.apply(y, ay, tensors, c, s)
    return np.linalg.norm(x - ay) / np.linalg.norm(x)


# =============================================================================
# Test Construction
# =============================================================================


class TestConstruction:
    """Test parameter validation and defaults."""

    def test_defaults(self):
        lsf = LocalSmoothingFilter()
        assert lsf.small == 0.01
        assert lsf.niter == 100
        assert lsf.kernel.stencil is Stencil.D22
        assert not lsf.preconditioner
        assert "D22" in repr(lsf)

    @pytest.mark.parametrize("small", [0.0, 1.0, -0.5, 2.0, "0.1"])
    def test_invalid_small(self, small):
        with pytest.raises(ConfigurationError):
            LocalSmoothingFilter(small=small)

    @pytest.mark.parametrize("niter", [0, -1, 10.5])
    def test_invalid_niter(self, niter):
        with pytest.raises(ConfigurationError):
            LocalSmoothingFilter(niter=niter)

    def test_set_preconditioner(self):
        lsf = LocalSmoothingFilter()
        lsf.set_preconditioner(True)
        assert lsf.preconditioner


# =============================================================================
# Test Smoothing
# =============================================================================


class TestSmoothing:
    """Test the smoothing solves."""

    def test_1d_direct_solve(self, rng):
        lsf = LocalSmoothingFilter()
        x = rng.normal(size=50)
        y = np.empty(50)
        result = lsf.apply(x, y, c=4.0)

        assert result.method == "tridiagonal"
        assert result.converged
        assert result.iterations == 0
        assert _system_residual(LocalDiffusionKernel(Stencil.D21), x, y, c=4.0) < 1e-10

    def test_zero_gain_returns_input(self, rng, tensors2):
        x = rng.normal(size=tensors2.shape)
        y = np.zeros_like(x)
        result = LocalSmoothingFilter().apply(x, y, tensors2, c=0.0)
        assert result.iterations == 0
        np.testing.assert_array_equal(y, x)

    def test_1d_direct_solve_matches_cg(self, rng):
        x = rng.normal(size=40)
        s = rng.uniform(0.5, 2.0, 40)
        y_direct = np.empty(40)
        LocalSmoothingFilter().apply(x, y_direct, c=3.0, s=s)

        kernel = LocalDiffusionKernel(Stencil.D21, parallel=False)

        def apply_a(v, out):
            out[:] = v
            kernel.apply(v, out, None, 3.0, s)

        y_cg = x.copy()
        result = conjugate_gradient(apply_a, x, y_cg, small=1e-12, niter=500)
        assert result.converged
        np.testing.assert_allclose(y_cg, y_direct, rtol=1e-8, atol=1e-10)

    def test_1d_rejects_tensors(self, tensors2):
        with pytest.raises(ConfigurationError):
            LocalSmoothingFilter().apply(np.zeros(5), np.zeros(5), tensors2)

    def test_2d_cg_reaches_tolerance(self, rng, tensors2):
        kernel = LocalDiffusionKernel(Stencil.D71)
        lsf = LocalSmoothingFilter(small=1e-6, niter=500, kernel=kernel)
        x = rng.normal(size=tensors2.shape)
        y = np.zeros_like(x)
        result = lsf.apply(x, y, tensors2, c=2.0)

        assert result.method == "cg"
        assert result.converged
        assert result.metadata["stencil"] == "D71"
        assert result.metadata["shape"] == tensors2.shape
        assert _system_residual(kernel, x, y, tensors2, c=2.0) < 2e-6

    @pytest.mark.parametrize("preconditioner", [False, True])
    def test_residual_history_non_increasing(self, rng, tensors2, preconditioner):
        lsf = LocalSmoothingFilter(small=1e-8, niter=200, preconditioner=preconditioner)
        x = rng.normal(size=tensors2.shape)
        s = rng.uniform(0.5, 1.5, x.shape)
        result = lsf.apply(x, np.zeros_like(x), tensors2, 0.05, s)
        history = result.residual_history

        assert result.converged
        assert len(history) == result.iterations + 1
        assert np.all(np.diff(history) <= 1e-12 * history[0])
        assert result.iterations < 20

    def test_preconditioned_matches_unpreconditioned(self, rng, tensors3):
        x = rng.normal(size=tensors3.shape)
        s = rng.uniform(0.5, 2.0, tensors3.shape)
        y_cg = np.zeros_like(x)
        y_pcg = np.zeros_like(x)
        LocalSmoothingFilter(small=1e-8, niter=1000).apply(x, y_cg, tensors3, 3.0, s)
        result = LocalSmoothingFilter(small=1e-8, niter=1000, preconditioner=True).apply(x, y_pcg, tensors3, 3.0, s)

        assert result.method == "pcg"
        assert result.converged
        np.testing.assert_allclose(y_pcg, y_cg, atol=1e-3 * np.abs(y_cg).max())

    def test_in_place(self, rng, tensors2):
        lsf = LocalSmoothingFilter(small=1e-8, niter=500)
        x = rng.normal(size=tensors2.shape)
        expected = np.zeros_like(x)
        lsf.apply(x, expected, tensors2, 5.0)
        lsf.apply(x, x, tensors2, 5.0)
        np.testing.assert_allclose(x, expected, rtol=1e-6, atol=1e-8)

    def test_preserves_constants(self, tensors2):
        lsf = LocalSmoothingFilter(small=1e-6)
        x = np.full(tensors2.shape, 4.0)
        y = np.zeros_like(x)
        lsf.apply(x, y, tensors2, 10.0)
        np.testing.assert_allclose(y, 4.0, rtol=1e-5)

    def test_smoothing_reduces_roughness(self, rng):
        lsf = LocalSmoothingFilter(small=1e-4, niter=500)
        x = rng.normal(size=(32, 32))
        y = np.zeros_like(x)
        lsf.apply(x, y, c=8.0)
        assert np.abs(np.diff(y, axis=0)).mean() < 0.5 * np.abs(np.diff(x, axis=0)).mean()

    def test_iteration_cap_reported(self, rng, tensors2):
        lsf = LocalSmoothingFilter(small=1e-9, niter=2)
        x = rng.normal(size=tensors2.shape)
        result = lsf.apply(x, np.zeros_like(x), tensors2, 50.0)
        assert result.iterations == 2
        assert not result.converged

    def test_non_convergence_logged_at_debug(self, rng, tensors2):
        logger = get_logger("tensor_smoothing.alg.local_smoothing")
        records = []
        handler = logging.Handler(level=logging.DEBUG)
        handler.emit = records.append
        old_level = logger.level
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        try:
            lsf = LocalSmoothingFilter(small=1e-9, niter=1)
            x = rng.normal(size=tensors2.shape)
            lsf.apply(x, np.zeros_like(x), tensors2, 50.0)
        finally:
            logger.removeHandler(handler)
            logger.setLevel(old_level)

        messages = [record.getMessage() for record in records]
        assert any(message.startswith("CG hit iteration limit after 1 iterations") for message in messages)
        assert all(record.levelno == logging.DEBUG for record in records)

    def test_unsupported_stencil_dimension(self):
        lsf = LocalSmoothingFilter(kernel=LocalDiffusionKernel(Stencil.D24))
        with pytest.raises(UnsupportedStencilError):
            lsf.apply(np.zeros((3, 3, 3)), np.zeros((3, 3, 3)))

    def test_shape_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            LocalSmoothingFilter().apply(np.zeros((4, 4)), np.zeros((4, 3)))


# =============================================================================
# Test Auxiliary Filters
# =============================================================================


class TestAuxiliaryFilters:
    """Test apply_smooth_s and apply_smooth_l."""

    def test_smooth_s(self):
        lsf = LocalSmoothingFilter()
        x = np.zeros((3, 3))
        x[1, 1] = 1.0
        y = lsf.apply_smooth_s(x, np.empty_like(x))
        assert y[1, 1] == pytest.approx(0.25)

    def test_smooth_l_caches_filter(self, rng):
        lsf = LocalSmoothingFilter()
        x = rng.normal(size=(20, 18))
        lsf.apply_smooth_l(0.3, x, np.empty_like(x))
        first = lsf.lowpass_cache.filter
        lsf.apply_smooth_l(0.3, x, np.empty_like(x))
        assert lsf.lowpass_cache.filter is first
        lsf.apply_smooth_l(0.2, x, np.empty_like(x))
        assert lsf.lowpass_cache.filter is not first

    def test_smooth_l_invalid_kmax(self):
        with pytest.raises(ConfigurationError):
            LocalSmoothingFilter().apply_smooth_l(0.5, np.zeros((4, 4)), np.zeros((4, 4)))
