"""
Logging utilities for tensor_smoothing.

Usage:
    >>> from tensor_smoothing.utils.logging import get_logger, configure_logging
    >>> configure_logging(level="DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.debug("Starting smoothing...")
"""

from __future__ import annotations

from .logger import (
    PACKAGE_LOGGER,
    configure_logging,
    get_logger,
    log_cg_iteration,
    log_kernel_pass,
    log_lowpass_cache,
    log_smoothing_summary,
    make_formatter,
)

__all__ = [
    "PACKAGE_LOGGER",
    "configure_logging",
    "get_logger",
    "log_cg_iteration",
    "log_kernel_pass",
    "log_lowpass_cache",
    "log_smoothing_summary",
    "make_formatter",
]
