"""
Pairwise RMSD matrix builder.

Symmetric mode (one system): only pairs i < j are evaluated; each result is
written to M[j, i] and mirrored to M[i, j]; the diagonal stays zero. That is
N(N-1)/2 kernel evaluations.

Two-system mode: every frame of the first cache against every frame of the
second, an N1 x N2 matrix with each cell computed once.

Rows are evaluated with the batched kernel (one frame against a stack of
frames). With ``workers > 1`` rows are dealt round-robin to a thread pool:
a row only reads the immutable cache and only writes its own cells, so the
matrix needs no lock; the progress counter carries its own.

Cancellation is cooperative: ``cancel()`` (or setting the event passed in)
stops the loop before the next row and build() raises RunCancelled. No
partial matrix is returned.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Sequence
import logging
import threading

import numpy as np

from .base import AnalysisError, InputError, RunCancelled
from .cache import CoordinateCache
from .progress import ProgressReporter
from .superpose import superposition_rmsd_many
from ..config import RunConfig
from ..linalg import SVDBackend

logger = logging.getLogger(__name__)

__all__ = ["PairwiseMatrixBuilder", "pair_count"]


def pair_count(n_frames: int) -> int:
    return n_frames * (n_frames - 1) // 2


class PairwiseMatrixBuilder:
    """
    Parameters
    ----------
    cache : CoordinateCache
        Centered frames of the (first) system.
    other : CoordinateCache, optional
        Second system; switches to the rectangular two-system mode.
    config : RunConfig, optional
        Supplies workers, progress_step, verbose and allow_reflection.
    backend : SVDBackend, optional
        Decomposition backend for the kernel.
    cancel_event : threading.Event, optional
        Shared run-level cancellation flag.
    """

    def __init__(
        self,
        cache: CoordinateCache,
        other: Optional[CoordinateCache] = None,
        config: Optional[RunConfig] = None,
        *,
        backend: Optional[SVDBackend] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        if other is not None and other.n_atoms != cache.n_atoms:
            raise InputError(
                f"Selections differ in size: {cache.n_atoms} atoms vs {other.n_atoms} atoms"
            )
        self.cache = cache
        self.other = other
        self.config = config or RunConfig()
        self.backend = backend
        self._cancel = cancel_event or threading.Event()
        self._abort = threading.Event()
        self.progress: Optional[ProgressReporter] = None

    @property
    def symmetric(self) -> bool:
        return self.other is None

    @property
    def shape(self) -> tuple:
        if self.symmetric:
            return (len(self.cache), len(self.cache))
        return (len(self.cache), len(self.other))

    @property
    def total_pairs(self) -> int:
        if self.symmetric:
            return pair_count(len(self.cache))
        return len(self.cache) * len(self.other)

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        self._cancel.set()

    def _rows(self) -> List[int]:
        if self.symmetric:
            return list(range(1, len(self.cache)))
        return list(range(len(self.cache)))

    def _compute_row(self, row: int) -> np.ndarray:
        u = self.cache.frame(row)
        others = self.cache.block(0, row) if self.symmetric else self.other.as_array()
        return superposition_rmsd_many(
            u,
            others,
            backend=self.backend,
            allow_reflection=self.config.allow_reflection,
        )

    def _run_rows(self, rows: Sequence[int], matrix: np.ndarray, progress: ProgressReporter) -> None:
        for row in rows:
            if self._cancel.is_set() or self._abort.is_set():
                return
            values = self._compute_row(row)
            if self.symmetric:
                matrix[row, :row] = values
                matrix[:row, row] = values
            else:
                matrix[row, :] = values
            progress.update(len(values))

    def build(self) -> np.ndarray:
        """Evaluate every pair and return the finished (read-only) matrix."""
        self._abort.clear()
        matrix = np.zeros(self.shape, dtype=float)
        progress = ProgressReporter(
            self.total_pairs,
            step=self.config.progress_step,
            enabled=self.config.verbose,
            logger=logger,
        )
        self.progress = progress
        rows = self._rows()
        workers = min(self.config.workers, max(1, len(rows)))

        logger.info(
            "Computing %d pair-wise RMSDs (%s, %d x %d, %d worker%s)",
            self.total_pairs,
            "symmetric" if self.symmetric else "two-system",
            matrix.shape[0],
            matrix.shape[1],
            workers,
            "" if workers == 1 else "s",
        )
        progress.start()

        if workers == 1:
            self._run_rows(rows, matrix, progress)
        else:
            partitions = [rows[w::workers] for w in range(workers)]
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [pool.submit(self._run_rows, part, matrix, progress) for part in partitions]
                try:
                    for future in as_completed(futures):
                        future.result()
                except BaseException:
                    self._abort.set()
                    raise

        if self._cancel.is_set():
            logger.warning(
                "Pair-wise RMSD run cancelled after %d of %d pairs; discarding partial matrix",
                progress.completed,
                progress.total,
            )
            raise RunCancelled(
                f"cancelled after {progress.completed} of {progress.total} pairs"
            )

        if progress.completed != self.total_pairs:
            raise AnalysisError(
                f"incomplete matrix: {progress.completed} of {self.total_pairs} pairs computed"
            )
        progress.finish()
        matrix.flags.writeable = False
        return matrix
