"""
Tensor fields for anisotropic diffusion.

This module provides:
- Tensors2, Tensors3: Abstract tensor-field capability
- IDENTITY_TENSORS2, IDENTITY_TENSORS3: Constant identity fields
- ArrayTensors2, ArrayTensors3: Fields backed by coefficient arrays
- EigenTensors2, EigenTensors3: Fields stored as eigenvectors and eigenvalues
- override_eigenvalues: Temporarily replace eigenvalues of a field
"""

from __future__ import annotations

from .base import (
    IDENTITY_TENSORS2,
    IDENTITY_TENSORS3,
    ArrayTensors2,
    ArrayTensors3,
    IdentityTensors2,
    IdentityTensors3,
    Tensors2,
    Tensors3,
    identity_for,
)
from .eigen import EigenTensors2, EigenTensors3, override_eigenvalues

__all__ = [
    "IDENTITY_TENSORS2",
    "IDENTITY_TENSORS3",
    "ArrayTensors2",
    "ArrayTensors3",
    "EigenTensors2",
    "EigenTensors3",
    "IdentityTensors2",
    "IdentityTensors3",
    "Tensors2",
    "Tensors3",
    "identity_for",
    "override_eigenvalues",
]
