"""
Thread-pool helpers for outer-axis parallel loops.

numpy releases the GIL inside its array kernels, so a thread pool gives
real speedups for the blockwise gather/scatter work done by the diffusion
kernel and the CG vector operations. A single executor per worker count is
created lazily and reused across calls.
"""

from __future__ import annotations

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


class ExecutorCache:
    """Lazily created, process-wide thread pools keyed by worker count."""

    _lock: ClassVar[threading.Lock] = threading.Lock()
    _executors: ClassVar[dict[int, ThreadPoolExecutor]] = {}

    @classmethod
    def get(cls, max_workers: int | None = None) -> ThreadPoolExecutor:
        nworkers = max_workers or default_worker_count()
        if nworkers in cls._executors:
            return cls._executors[nworkers]
        with cls._lock:
            if nworkers not in cls._executors:
                cls._executors[nworkers] = ThreadPoolExecutor(
                    max_workers=nworkers, thread_name_prefix="tensor_smoothing"
                )
        return cls._executors[nworkers]

    @classmethod
    def shutdown(cls):
        """Shut down all cached pools (they are recreated on next use)."""
        with cls._lock:
            for executor in cls._executors.values():
                executor.shutdown(wait=True)
            cls._executors.clear()


def default_worker_count() -> int:
    return os.cpu_count() or 1


def split_blocks(indices: np.ndarray, nblocks: int) -> list[np.ndarray]:
    """Split a 1D index array into at most ``nblocks`` non-empty contiguous blocks."""
    nblocks = max(1, min(nblocks, len(indices)))
    return [block for block in np.array_split(indices, nblocks) if len(block) > 0]


def interleaved_sweeps(start: int, stop: int, stride: int) -> list[np.ndarray]:
    """
    Partition ``range(start, stop)`` into ``stride`` interleaved subsets.

    Subset ``k`` holds ``start+k, start+k+stride, ...``. Returns only the
    non-empty subsets, in order of ``k``.
    """
    sweeps = [np.arange(start + k, stop, stride) for k in range(stride)]
    return [sweep for sweep in sweeps if len(sweep) > 0]


def parallel_loop(
    indices: np.ndarray,
    body: Callable[[np.ndarray], Any],
    parallel: bool = True,
    max_workers: int | None = None,
) -> list[Any]:
    """
    Run ``body(block)`` over contiguous blocks of ``indices``.

    With ``parallel=False`` (or a single worker) ``body`` is called once
    with all indices on the calling thread. Otherwise blocks are submitted
    to the cached executor and this call waits for all of them; an
    exception raised in any block is re-raised here.

    Returns:
        The values returned by ``body``, in block order.
    """
    if len(indices) == 0:
        return []

    nworkers = max_workers or default_worker_count()
    if not parallel or nworkers <= 1 or len(indices) == 1:
        return [body(indices)]

    executor = ExecutorCache.get(nworkers)
    futures = [executor.submit(body, block) for block in split_blocks(indices, nworkers)]
    return [future.result() for future in futures]


def run_sweeps(
    sweeps: Sequence[np.ndarray],
    body: Callable[[np.ndarray], Any],
    parallel: bool = True,
    max_workers: int | None = None,
):
    """Run ``parallel_loop`` over each sweep in turn, waiting between sweeps."""
    for sweep in sweeps:
        parallel_loop(sweep, body, parallel=parallel, max_workers=max_workers)
