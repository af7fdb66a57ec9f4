"""
Applications built on structure-guided smoothing.

This module provides:
- semblance: LocalSemblanceFilter and its Direction2/Direction3 selectors
"""

from tensor_smoothing.applications.semblance import (
    Direction2,
    Direction3,
    LaplacianSmoother,
    LocalSemblanceFilter,
)

__all__ = [
    "Direction2",
    "Direction3",
    "LaplacianSmoother",
    "LocalSemblanceFilter",
]
