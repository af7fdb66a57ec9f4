"""
Blockwise vector operations for the conjugate-gradient loops.

Arrays are split into contiguous blocks along their outermost axis and
the blocks processed by the shared thread pool. Small arrays (and 1D
arrays) are processed on the calling thread.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from tensor_smoothing.utils.parallel import parallel_loop

if TYPE_CHECKING:
    from numpy.typing import NDArray


class VectorOps:
    """
    ``dot``, ``axpy``, ``xpay`` and ``copy`` over image-shaped arrays.

    Attributes:
        parallel: Use the thread pool for large arrays
        max_workers: Thread count (None for CPU count)
        min_parallel_size: Arrays with fewer samples run serially
    """

    def __init__(self, parallel: bool = True, max_workers: int | None = None, min_parallel_size: int = 1 << 16):
        self.parallel = parallel
        self.max_workers = max_workers
        self.min_parallel_size = min_parallel_size

    def _blocks(self, x: NDArray, body):
        parallel = self.parallel and x.ndim > 1 and x.size >= self.min_parallel_size
        rows = np.arange(x.shape[0])

        def run(block):
            return body(slice(int(block[0]), int(block[-1]) + 1))

        return parallel_loop(rows, run, parallel=parallel, max_workers=self.max_workers)

    def dot(self, x: NDArray, y: NDArray) -> float:
        """Sum of ``x * y`` over all samples."""
        return float(sum(self._blocks(x, lambda rows: np.vdot(x[rows], y[rows]))))

    def axpy(self, a: float, x: NDArray, y: NDArray):
        """``y += a·x``"""

        def body(rows):
            y[rows] += a * x[rows]

        self._blocks(x, body)

    def xpay(self, x: NDArray, a: float, y: NDArray):
        """``y = x + a·y``"""

        def body(rows):
            y[rows] *= a
            y[rows] += x[rows]

        self._blocks(x, body)

    def copy(self, x: NDArray, y: NDArray):
        """``y = x``"""

        def body(rows):
            y[rows] = x[rows]

        self._blocks(x, body)

    def multiply(self, m: NDArray, x: NDArray, y: NDArray):
        """``y = m·x`` elementwise."""

        def body(rows):
            np.multiply(m[rows], x[rows], out=y[rows])

        self._blocks(x, body)
