"""
Pytest configuration and shared fixtures for the tensor_smoothing test suite.

This module provides markers, random tensor fields and small images used
across unit and integration tests.
"""

import pytest

import numpy as np

from tensor_smoothing.tensors import ArrayTensors2, ArrayTensors3, EigenTensors2, EigenTensors3

# =============================================================================
# Test Configuration
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (slower, cross-component)")
    config.addinivalue_line("markers", "mathematical: Mathematical property validation tests")
    config.addinivalue_line("markers", "slow: Slow tests (may take >10 seconds)")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test paths."""
    for item in items:
        test_path = str(item.fspath)

        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)

        if "large" in item.name or "slow" in item.name:
            item.add_marker(pytest.mark.slow)


# =============================================================================
# Random Data Fixtures
# =============================================================================


@pytest.fixture
def rng():
    """Seeded random generator for reproducible tests."""
    return np.random.default_rng(20240917)


def random_tensors2(rng, shape):
    """Random symmetric positive-definite 2D tensor field."""
    theta = rng.uniform(0.0, np.pi, shape)
    au = rng.uniform(0.5, 2.0, shape)
    av = rng.uniform(0.01, 0.5, shape)
    c, s = np.cos(theta), np.sin(theta)
    d11 = au * c * c + av * s * s
    d12 = (au - av) * c * s
    d22 = au * s * s + av * c * c
    return ArrayTensors2(d11, d12, d22)


def random_tensors3(rng, shape):
    """Random symmetric positive-definite 3D tensor field."""
    a = rng.normal(size=(*shape, 3, 3))
    d = np.einsum("...ij,...kj->...ik", a, a) + 0.1 * np.eye(3)
    return ArrayTensors3(d[..., 0, 0], d[..., 0, 1], d[..., 0, 2], d[..., 1, 1], d[..., 1, 2], d[..., 2, 2])


def random_eigen_tensors2(rng, shape):
    """Random EigenTensors2 with linear structure (au > av)."""
    theta = rng.uniform(0.0, np.pi, shape)
    return EigenTensors2(np.cos(theta), np.sin(theta), au=rng.uniform(0.5, 1.0, shape), av=0.1)


def random_eigen_tensors3(rng, shape):
    """Random EigenTensors3 with orthonormal u and w (third components non-negative)."""
    a = rng.normal(size=(*shape, 3, 3))
    _, vectors = np.linalg.eigh(np.einsum("...ij,...kj->...ik", a, a))
    u = vectors[..., :, 2] * np.sign(vectors[..., 2:3, 2] + 1e-300)
    w = vectors[..., :, 0] * np.sign(vectors[..., 2:3, 0] + 1e-300)
    return EigenTensors3(u[..., 0], u[..., 1], w[..., 0], w[..., 1], au=1.0, av=0.5, aw=0.1)


@pytest.fixture
def tensors2(rng):
    """Random SPD tensors for a 12x10 image."""
    return random_tensors2(rng, (12, 10))


@pytest.fixture
def tensors3(rng):
    """Random SPD tensors for a 6x7x5 image."""
    return random_tensors3(rng, (6, 7, 5))


@pytest.fixture
def eigen_tensors2(rng):
    """Random eigen-decomposed tensors for a 16x14 image."""
    return random_eigen_tensors2(rng, (16, 14))


@pytest.fixture
def eigen_tensors3(rng):
    """Random eigen-decomposed tensors for a 6x7x8 image."""
    return random_eigen_tensors3(rng, (6, 7, 8))


@pytest.fixture
def make_tensors(rng):
    """Factory for random SPD array tensors of a given 2D or 3D shape."""

    def make(shape):
        return random_tensors2(rng, shape) if len(shape) == 2 else random_tensors3(rng, shape)

    return make


@pytest.fixture
def make_eigen_tensors(rng):
    """Factory for random eigen-decomposed tensors of a given 2D or 3D shape."""

    def make(shape):
        return random_eigen_tensors2(rng, shape) if len(shape) == 2 else random_eigen_tensors3(rng, shape)

    return make
