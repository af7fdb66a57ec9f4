"""
Configuration models for tensor_smoothing.

Usage:
    >>> from tensor_smoothing.config import SmoothingConfig
    >>> lsf = SmoothingConfig.accurate().build()
"""

from tensor_smoothing.config.smoothing_config import KernelConfig, SemblanceConfig, SmoothingConfig

__all__ = [
    "KernelConfig",
    "SemblanceConfig",
    "SmoothingConfig",
]
