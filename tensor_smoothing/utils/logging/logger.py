"""
Logging for tensor_smoothing.

Every library logger is a child of the ``tensor_smoothing`` package logger,
which owns the handlers and does not propagate to the root logger. Module
loggers therefore carry no handlers of their own, and reconfiguring the
package logger takes effect everywhere at once.

Smoothing events are reported at DEBUG, so library users see nothing
unless they opt in with ``configure_logging(level="DEBUG")``:

- kernel passes: stencil, image shape and wall time of each pass
- CG and PCG iterations, marking those where the residual is recomputed
- one summary per smoothing solve
- low-pass filter cache hits and rebuilds
"""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING

import colorlog

if TYPE_CHECKING:
    from tensor_smoothing.utils.solver_result import SmoothingResult

PACKAGE_LOGGER = "tensor_smoothing"

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_DATEFMT = "%H:%M:%S"
_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

_configure_lock = threading.Lock()


def make_formatter(use_colors: bool = False, include_location: bool = False) -> logging.Formatter:
    """
    Build the formatter used by package handlers.

    Args:
        use_colors: Color the level and message with colorlog
        include_location: Append ``(file:line)`` of the logging call
    """
    fmt = _FORMAT
    if include_location:
        fmt += " (%(filename)s:%(lineno)d)"
    if use_colors:
        return colorlog.ColoredFormatter("%(log_color)s" + fmt, datefmt=_DATEFMT, log_colors=_COLORS)
    return logging.Formatter(fmt, datefmt=_DATEFMT)


def configure_logging(
    level: str | int = "INFO",
    log_to_file: bool = False,
    log_file_path: str | Path | None = None,
    use_colors: bool = True,
    include_location: bool = False,
) -> logging.Logger:
    """
    Configure the package logger, replacing any handlers it already has.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Also write records to a file
        log_file_path: Log file; defaults to ``tensor_smoothing.log`` in the working directory
        use_colors: Color terminal output (files are never colored)
        include_location: Include the source location of each record

    Returns:
        The package logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    with _configure_lock:
        package = logging.getLogger(PACKAGE_LOGGER)
        for handler in list(package.handlers):
            package.removeHandler(handler)
            handler.close()
        package.setLevel(level)
        package.propagate = False

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(make_formatter(use_colors, include_location))
        console.setLevel(level)
        package.addHandler(console)

        if log_to_file:
            path = Path(log_file_path) if log_file_path is not None else Path.cwd() / "tensor_smoothing.log"
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path)
            file_handler.setFormatter(make_formatter(False, include_location))
            file_handler.setLevel(level)
            package.addHandler(file_handler)

    return package


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a logger below the package logger.

    Args:
        name: Logger name (if None, uses the calling module's name). Names
            outside the package are placed under it.

    Returns:
        Logger that propagates to the package handlers
    """
    if name is None:
        import inspect

        frame = inspect.currentframe()
        if frame and frame.f_back:
            name = frame.f_back.f_globals.get("__name__", PACKAGE_LOGGER)
        else:
            name = PACKAGE_LOGGER
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"

    if not logging.getLogger(PACKAGE_LOGGER).handlers:
        configure_logging()
    return logging.getLogger(name)


# =============================================================================
# Smoothing events
# =============================================================================


def log_kernel_pass(
    logger: logging.Logger, stencil: str, shape: tuple[int, ...], ipass: int, npass: int, elapsed: float
):
    """Log the wall time of one pass of a diffusion kernel."""
    if logger.isEnabledFor(logging.DEBUG):
        shape_str = "x".join(str(n) for n in shape)
        logger.debug(f"{stencil} pass {ipass + 1}/{npass} on {shape_str}: {elapsed * 1e3:.2f} ms")


def log_cg_iteration(
    logger: logging.Logger, method: str, iteration: int, niter: int, rnorm: float, bnorm: float, refreshed: bool
):
    """
    Log one CG or PCG iteration.

    The residual is reported relative to ``‖b‖``; ``refreshed`` marks
    iterations where it was recomputed as ``b - A·x``.
    """
    if logger.isEnabledFor(logging.DEBUG):
        relative = rnorm / bnorm if bnorm else 0.0
        msg = f"{method.upper()} iteration {iteration}/{niter}: |r|/|b| = {relative:.2e}"
        if refreshed:
            msg += " (residual recomputed)"
        logger.debug(msg)


def log_smoothing_summary(logger: logging.Logger, result: SmoothingResult):
    """Log one line summarizing a smoothing solve."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    shape = result.metadata.get("shape")
    shape_str = "x".join(str(n) for n in shape) if shape is not None else "?"
    if result.method in ("tridiagonal", "copy"):
        logger.debug(f"{result.method.capitalize()} solve on {shape_str}")
        return
    where = f"{result.metadata.get('stencil', 'operator')} on {shape_str}"
    status = "converged" if result.converged else "hit iteration limit"
    elapsed = f", {result.execution_time:.3f}s" if result.execution_time is not None else ""
    logger.debug(
        f"{result.method.upper()} {status} after {result.iterations} iterations ({where}): "
        f"|r| = {result.rnorm:.2e}, tolerance {result.tolerance:.2e}{elapsed}"
    )


def log_lowpass_cache(logger: logging.Logger, kmax: float, hit: bool):
    """Log whether the low-pass filter for ``kmax`` was reused or rebuilt."""
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Low-pass cache {'hit' if hit else 'rebuild'} for kmax={kmax}")
