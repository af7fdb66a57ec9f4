"""
Utilities for tensor_smoothing.

This module provides:
- exceptions: Structured errors with suggestions and diagnostics
- logging: Package logger configuration and smoothing event helpers
- parallel: Thread-pool loops over outer-axis indices
- solver_result: Result records returned by smoothing solves
"""

from __future__ import annotations

from .exceptions import (
    ArrayAliasingError,
    ConfigurationError,
    DimensionMismatchError,
    SmoothingError,
    UnsupportedStencilError,
    validate_array_dimensions,
    validate_image_arrays,
    validate_parameter_value,
)
from .logging import configure_logging, get_logger
from .parallel import ExecutorCache, interleaved_sweeps, parallel_loop, run_sweeps
from .solver_result import SmoothingResult

__all__ = [
    "ArrayAliasingError",
    "ConfigurationError",
    "DimensionMismatchError",
    "ExecutorCache",
    "SmoothingError",
    "SmoothingResult",
    "UnsupportedStencilError",
    "configure_logging",
    "get_logger",
    "interleaved_sweeps",
    "parallel_loop",
    "run_sweeps",
    "validate_array_dimensions",
    "validate_image_arrays",
    "validate_parameter_value",
]
