"""
Integration tests for LocalSemblanceFilter.

Semblance combines the smoothing filter, its low-pass pre-filter and
temporary eigenvalue overrides on a shared tensor field.
"""

import pytest

import numpy as np

from tensor_smoothing.applications import Direction2, Direction3, LocalSemblanceFilter
from tensor_smoothing.tensors import ArrayTensors2, EigenTensors2
from tensor_smoothing.utils.exceptions import ConfigurationError, DimensionMismatchError


def _layered_image(shape, wavenumber=0.1):
    """Image varying only along the last axis (component 1)."""
    j = np.arange(shape[1])
    return np.tile(np.cos(2 * np.pi * wavenumber * j), (shape[0], 1))


def _tensors_normal_to_layers(shape):
    """Tensors with u along component 1 (the last axis)."""
    return EigenTensors2(np.ones(shape), np.zeros(shape), au=1.0, av=0.1)


# =============================================================================
# Test Semblance Values
# =============================================================================


class TestSemblanceValues:
    """Test semblance ranges and limiting cases."""

    def test_range_2d(self, rng, eigen_tensors2):
        lsf = LocalSemblanceFilter(2, 4)
        f = rng.normal(size=eigen_tensors2.shape)
        s = lsf.semblance(f, Direction2.V, eigen_tensors2)
        assert s.shape == f.shape
        assert np.all(s >= 0.0)
        assert np.all(s <= 1.0)

    def test_range_3d(self, rng, eigen_tensors3):
        lsf = LocalSemblanceFilter(1, 2, niter=200)
        f = rng.normal(size=eigen_tensors3.shape)
        s = lsf.semblance(f, Direction3.UV, eigen_tensors3)
        assert np.all((s >= 0.0) & (s <= 1.0))

    def test_range_1d(self, rng):
        lsf = LocalSemblanceFilter(3, 0)
        f = rng.normal(size=64)
        s = lsf.semblance(f)
        assert np.all((s >= 0.0) & (s <= 1.0))
        assert s.mean() < 0.9

    def test_constant_image_is_coherent(self, eigen_tensors2):
        lsf = LocalSemblanceFilter(2, 4)
        f = np.full(eigen_tensors2.shape, 3.0)
        s = lsf.semblance(f, Direction2.U, eigen_tensors2)
        np.testing.assert_allclose(s, 1.0, atol=1e-3)

    def test_zero_half_widths(self, rng, eigen_tensors2):
        lsf = LocalSemblanceFilter(0, 0)
        f = rng.normal(size=eigen_tensors2.shape)
        f[0, 0] = 0.0
        s = lsf.semblance(f, Direction2.V, eigen_tensors2)
        assert s[0, 0] == 0.0
        np.testing.assert_allclose(s.ravel()[1:], 1.0)

    def test_layers_coherent_along_v(self):
        shape = (24, 48)
        f = _layered_image(shape)
        tensors = _tensors_normal_to_layers(shape)
        lsf = LocalSemblanceFilter(4, 2)
        along = lsf.semblance(f, Direction2.V, tensors)
        across = lsf.semblance(f, Direction2.U, tensors)
        interior = (slice(None), slice(12, -12))
        assert along[interior].mean() > 0.9
        assert across[interior].mean() < along[interior].mean()

    def test_string_direction_and_output_array(self, rng, eigen_tensors2):
        lsf = LocalSemblanceFilter(1, 2)
        f = rng.normal(size=eigen_tensors2.shape)
        out = np.empty_like(f)
        result = lsf.semblance(f, "uv", eigen_tensors2, out=out)
        assert result is out
        np.testing.assert_allclose(out, lsf.semblance(f, Direction2.UV, eigen_tensors2))

    def test_eigenvalues_restored(self, rng, eigen_tensors2):
        saved = eigen_tensors2.get_eigenvalues()
        LocalSemblanceFilter(2, 2).semblance(rng.normal(size=eigen_tensors2.shape), Direction2.U, eigen_tensors2)
        for restored, original in zip(eigen_tensors2.get_eigenvalues(), saved, strict=True):
            np.testing.assert_array_equal(restored, original)


# =============================================================================
# Test Directional Smoothing
# =============================================================================


class TestDirectionalSmoothing:
    """Test smooth1 and smooth2."""

    def test_smooth1_along_layers_preserves_them(self):
        shape = (20, 48)
        f = _layered_image(shape)
        tensors = _tensors_normal_to_layers(shape)
        g = LocalSemblanceFilter(4, 4).smooth1(f, Direction2.V, tensors)
        np.testing.assert_allclose(g[:, 12:-12], f[:, 12:-12], atol=0.05)

    def test_smooth2_across_layers_attenuates_them(self):
        shape = (20, 48)
        f = _layered_image(shape)
        tensors = _tensors_normal_to_layers(shape)
        g = LocalSemblanceFilter(4, 6).smooth2(f, Direction2.V, tensors)
        assert np.abs(g[:, 12:-12]).max() < 0.5 * np.abs(f).max()

    def test_orthogonal_directions(self):
        assert Direction2.U.orthogonal is Direction2.V
        assert Direction2.UV.orthogonal is Direction2.U
        assert Direction3.UV.orthogonal is Direction3.W
        assert Direction3.W.orthogonal is Direction3.UV
        assert Direction3.UVW.orthogonal is Direction3.U
        assert Direction3.VW.eigenvalues == (0.0, 1.0, 1.0)


# =============================================================================
# Test Validation
# =============================================================================


class TestValidation:
    """Test rejection of inconsistent inputs."""

    def test_direction_of_wrong_rank(self, eigen_tensors2):
        lsf = LocalSemblanceFilter(1, 1)
        with pytest.raises(ConfigurationError):
            lsf.semblance(np.zeros(eigen_tensors2.shape), Direction3.U, eigen_tensors2)

    def test_missing_direction(self, eigen_tensors2):
        with pytest.raises(ConfigurationError):
            LocalSemblanceFilter(1, 1).semblance(np.zeros(eigen_tensors2.shape), None, eigen_tensors2)

    def test_tensors_must_be_eigen_decomposed(self):
        tensors = ArrayTensors2(np.ones((4, 4)), np.zeros((4, 4)), np.ones((4, 4)))
        with pytest.raises(ConfigurationError):
            LocalSemblanceFilter(1, 1).semblance(np.zeros((4, 4)), Direction2.U, tensors)

    def test_tensor_shape(self, eigen_tensors2):
        with pytest.raises(DimensionMismatchError):
            LocalSemblanceFilter(1, 1).semblance(np.zeros((4, 4)), Direction2.U, eigen_tensors2)

    def test_unsupported_rank(self):
        with pytest.raises(DimensionMismatchError):
            LocalSemblanceFilter(1, 1).semblance(np.zeros((2, 2, 2, 2)))

    def test_invalid_parameters(self):
        with pytest.raises(ConfigurationError):
            LocalSemblanceFilter(-1, 2)
        with pytest.raises(ConfigurationError):
            LocalSemblanceFilter(1, 2, kmax=0.5)
