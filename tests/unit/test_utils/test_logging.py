"""
Unit tests for tensor_smoothing/utils/logging.

The package logger does not propagate to the root logger, so these tests
attach a collecting handler to the logger under test instead of using caplog.
"""

import logging

import colorlog
import numpy as np
import pytest

from tensor_smoothing.alg.numerical import conjugate_gradient
from tensor_smoothing.operators import LocalDiffusionKernel, Stencil
from tensor_smoothing.operators.filters import LowpassFilterCache
from tensor_smoothing.utils.logging import (
    PACKAGE_LOGGER,
    configure_logging,
    get_logger,
    log_cg_iteration,
    log_kernel_pass,
    log_smoothing_summary,
    make_formatter,
)
from tensor_smoothing.utils.solver_result import SmoothingResult


class _Collector(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)

    @property
    def messages(self):
        return [record.getMessage() for record in self.records]


@pytest.fixture
def collect():
    """Factory attaching a collecting handler to a named logger at DEBUG."""
    attached = []

    def _collect(name="tensor_smoothing.tests.logging", level=logging.DEBUG):
        logger = get_logger(name)
        handler = _Collector()
        attached.append((logger, handler, logger.level))
        logger.addHandler(handler)
        logger.setLevel(level)
        return logger, handler

    yield _collect
    for logger, handler, old_level in attached:
        logger.removeHandler(handler)
        logger.setLevel(old_level)


@pytest.fixture
def restore_logging():
    """Reset package logging configuration after a test changes it."""
    yield
    configure_logging(level="INFO", use_colors=True)


# =============================================================================
# Test Logger Hierarchy
# =============================================================================


class TestLoggerHierarchy:
    def test_get_logger_is_cached(self):
        assert get_logger("tensor_smoothing.tests.cached") is get_logger("tensor_smoothing.tests.cached")

    def test_get_logger_defaults_to_calling_module(self):
        assert get_logger().name == f"{PACKAGE_LOGGER}.{__name__}"

    def test_foreign_names_placed_under_package(self):
        assert get_logger("myapp.smoothing").name == "tensor_smoothing.myapp.smoothing"

    def test_module_loggers_share_package_handlers(self):
        logger = get_logger("tensor_smoothing.tests.propagate")
        package = logging.getLogger(PACKAGE_LOGGER)
        assert logger.propagate is True
        assert logger.handlers == []
        assert package.propagate is False
        assert len(package.handlers) == 1

    def test_configure_replaces_handlers(self, restore_logging):
        configure_logging(level="DEBUG", use_colors=False)
        package = configure_logging(level="WARNING", use_colors=False)
        assert len(package.handlers) == 1
        assert package.level == logging.WARNING
        assert package.handlers[0].level == logging.WARNING
        assert get_logger("tensor_smoothing.tests.configure").getEffectiveLevel() == logging.WARNING

    def test_configure_log_file(self, tmp_path, restore_logging):
        log_file = tmp_path / "nested" / "smoothing.log"
        package = configure_logging(level="DEBUG", log_to_file=True, log_file_path=log_file, use_colors=False)
        get_logger("tensor_smoothing.tests.file").debug("written to file")
        for handler in package.handlers:
            handler.flush()
        assert "written to file" in log_file.read_text()
        assert "\x1b[" not in log_file.read_text()


# =============================================================================
# Test Formatter
# =============================================================================


class TestFormatter:
    def test_without_colors(self):
        formatter = make_formatter(use_colors=False)
        record = logging.LogRecord("tensor_smoothing.x", logging.INFO, __file__, 1, "hello", None, None)
        output = formatter.format(record)
        assert "hello" in output
        assert "INFO" in output
        assert "\x1b[" not in output

    def test_with_location(self):
        formatter = make_formatter(use_colors=False, include_location=True)
        record = logging.LogRecord("tensor_smoothing.x", logging.INFO, "/a/b/module.py", 42, "msg", None, None)
        assert "(module.py:42)" in formatter.format(record)

    def test_colors_use_colorlog(self):
        assert isinstance(make_formatter(use_colors=True), colorlog.ColoredFormatter)


# =============================================================================
# Test Event Helpers
# =============================================================================


class TestEventHelpers:
    def test_kernel_pass(self, collect):
        logger, handler = collect()
        log_kernel_pass(logger, "D71", (4, 5), 1, 3, 0.0015)
        assert handler.messages == ["D71 pass 2/3 on 4x5: 1.50 ms"]
        assert handler.records[0].levelno == logging.DEBUG

    def test_cg_iteration(self, collect):
        logger, handler = collect()
        log_cg_iteration(logger, "cg", 5, 20, 3e-3, 2.0, refreshed=False)
        log_cg_iteration(logger, "pcg", 100, 200, 1e-4, 1.0, refreshed=True)
        assert handler.messages[0] == "CG iteration 5/20: |r|/|b| = 1.50e-03"
        assert handler.messages[1].startswith("PCG iteration 100/200")
        assert handler.messages[1].endswith("(residual recomputed)")

    def test_cg_iteration_zero_rhs(self, collect):
        logger, handler = collect()
        log_cg_iteration(logger, "cg", 1, 10, 0.0, 0.0, refreshed=False)
        assert "0.00e+00" in handler.messages[0]

    def test_smoothing_summary(self, collect):
        logger, handler = collect()
        converged = SmoothingResult(
            method="pcg",
            iterations=12,
            bnorm=1.0,
            rnorm=1e-4,
            tolerance=1e-3,
            execution_time=0.25,
            metadata={"stencil": "D71", "shape": (30, 40)},
        )
        stalled = SmoothingResult(method="cg", iterations=100, bnorm=1.0, rnorm=0.5, tolerance=1e-3)
        log_smoothing_summary(logger, converged)
        log_smoothing_summary(logger, stalled)
        log_smoothing_summary(logger, SmoothingResult(method="tridiagonal", metadata={"shape": (50,)}))

        assert handler.messages[0].startswith("PCG converged after 12 iterations (D71 on 30x40)")
        assert handler.messages[0].endswith("0.250s")
        assert handler.messages[1].startswith("CG hit iteration limit after 100 iterations")
        assert handler.messages[2] == "Tridiagonal solve on 50"

    def test_helpers_silent_above_debug(self, collect):
        logger, handler = collect(level=logging.INFO)
        log_kernel_pass(logger, "D22", (3, 3), 0, 1, 0.001)
        log_cg_iteration(logger, "cg", 1, 10, 1.0, 1.0, refreshed=False)
        log_smoothing_summary(logger, SmoothingResult(method="cg"))
        assert handler.records == []


# =============================================================================
# Test Logged Smoothing Events
# =============================================================================


class TestSmoothingEvents:
    def test_kernel_logs_each_pass(self, collect, rng):
        _, handler = collect("tensor_smoothing.operators.differential.diffusion_kernel")
        kernel = LocalDiffusionKernel(Stencil.D22, npass=2, parallel=False)
        x = rng.normal(size=(6, 7))
        kernel.apply(x, np.zeros_like(x))

        passes = [message for message in handler.messages if " pass " in message]
        assert len(passes) == 2
        assert passes[0].startswith("D22 pass 1/2 on 6x7")
        assert passes[1].startswith("D22 pass 2/2 on 6x7")

    def test_lowpass_cache_hits(self, collect):
        _, handler = collect("tensor_smoothing.operators.filters.lowpass")
        cache = LowpassFilterCache()
        cache.get(0.3)
        cache.get(0.3)
        cache.get(0.2)
        assert handler.messages == [
            "Low-pass cache rebuild for kmax=0.3",
            "Low-pass cache hit for kmax=0.3",
            "Low-pass cache rebuild for kmax=0.2",
        ]

    def test_cg_marks_residual_refresh(self, collect, rng):
        _, handler = collect("tensor_smoothing.alg.numerical.conjugate_gradient")
        diag = np.geomspace(1.0, 1e4, 400)
        b = rng.normal(size=400)

        def apply_a(v, out):
            np.multiply(diag, v, out=out)

        conjugate_gradient(apply_a, b, np.zeros_like(b), small=1e-30, niter=100)

        assert len(handler.messages) == 100
        refreshed = [message for message in handler.messages if message.endswith("(residual recomputed)")]
        assert refreshed == [handler.messages[99]]
        assert handler.messages[99].startswith("CG iteration 100/100")
