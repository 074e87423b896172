"""
Coordinate cache and centering.

The cache holds, for every requested frame index, the flattened coordinates
(x0, y0, z0, x1, ...) of the selected atoms, translated so their centroid is
at the origin. Two modes:

materialized
    every frame is read and centered once at construction and kept in one
    read-only (n_frames, 3 * n_atoms) array; access is O(1).
streaming
    nothing is kept; each access seeks the frame source again and re-centers,
    trading CPU and I/O for memory.

In materialized mode the cache estimates its footprint
(frames * atoms * 3 * 8 bytes) and warns with CacheMemoryWarning when the
estimate exceeds ``memory_fraction`` of physical memory.
"""
from __future__ import annotations

from typing import List, Optional, Sequence
import logging
import warnings

import numpy as np
import psutil

from .base import InputError, CacheMemoryWarning
from ..config import RunConfig, MATERIALIZED, STREAMING

logger = logging.getLogger(__name__)

__all__ = [
    "CoordinateCache",
    "center_at_origin",
    "center_frames",
    "estimate_cache_bytes",
    "physical_memory_bytes",
    "check_memory_footprint",
]

BYTES_PER_COORD = 8


def center_at_origin(frame: np.ndarray) -> np.ndarray:
    """Subtract the centroid from a flattened frame in place and return it."""
    points = frame.reshape(-1, 3)
    points -= points.mean(axis=0)
    return frame


def center_frames(frames: np.ndarray) -> np.ndarray:
    """Center every row of a (n_frames, 3 * n_atoms) array in place."""
    if frames.size == 0:
        return frames
    points = frames.reshape(frames.shape[0], -1, 3)
    points -= points.mean(axis=1, keepdims=True)
    return frames


def estimate_cache_bytes(n_frames: int, n_atoms: int) -> int:
    return int(n_frames) * int(n_atoms) * 3 * BYTES_PER_COORD


def physical_memory_bytes() -> int:
    return int(psutil.virtual_memory().total)


def check_memory_footprint(
    n_frames: int,
    n_atoms: int,
    fraction: float = 2.0 / 3.0,
    physical_memory: Optional[int] = None,
) -> bool:
    """
    Warn (CacheMemoryWarning + log record) when the cache estimate exceeds
    ``fraction`` of physical memory. Returns True if the warning fired.
    """
    needed = estimate_cache_bytes(n_frames, n_atoms)
    total = physical_memory if physical_memory is not None else physical_memory_bytes()
    limit = fraction * total
    logger.debug(
        "Coordinate cache estimate: %d bytes for %d frames x %d atoms (limit %.0f bytes)",
        needed, n_frames, n_atoms, limit,
    )
    if needed <= limit:
        return False
    msg = (
        f"Coordinate cache needs about {needed / 2**20:.1f} MiB, more than "
        f"{fraction:.0%} of physical memory ({total / 2**20:.1f} MiB). "
        "The machine may swap; consider the streaming cache mode."
    )
    logger.warning(msg)
    warnings.warn(msg, CacheMemoryWarning, stacklevel=2)
    return True


class CoordinateCache:
    """
    Centered coordinates of a fixed atom selection for an ordered list of frames.

    Parameters
    ----------
    source
        Frame source (see ``analysis.frames``).
    frame_indices : sequence of int
        Frames to cache, in matrix row order.
    atom_indices : sequence of int
        Resolved, ordered atom selection.
    config : RunConfig, optional
        Supplies cache mode, memory warning fraction, auto_stream and units.
    physical_memory : int, optional
        Override for detected physical memory (bytes).
    """

    def __init__(
        self,
        source,
        frame_indices: Sequence[int],
        atom_indices: Sequence[int],
        config: Optional[RunConfig] = None,
        *,
        physical_memory: Optional[int] = None,
    ):
        self.config = config or RunConfig()
        self.source = source
        self.frame_indices: List[int] = [int(i) for i in frame_indices]
        self.atom_indices = np.asarray(atom_indices, dtype=int)
        self.scale = self.config.length_scale
        self.mode = self.config.cache
        self.memory_warning = False

        if self.atom_indices.size == 0:
            raise InputError("Atom selection is empty")
        if not self.frame_indices:
            raise InputError("No frames requested")

        self._frames: Optional[np.ndarray] = None
        if self.mode == MATERIALIZED:
            self.memory_warning = check_memory_footprint(
                len(self.frame_indices),
                self.n_atoms,
                self.config.memory_fraction,
                physical_memory,
            )
            if self.memory_warning and self.config.auto_stream:
                logger.warning("Switching coordinate cache to streaming mode")
                self.mode = STREAMING
        if self.mode == MATERIALIZED:
            self._frames = self._materialize()
        else:
            # surface a bad first frame now rather than deep inside the pair loop
            self._read(0)
        logger.info(
            "Coordinate cache: %d frames x %d atoms (%s)", len(self), self.n_atoms, self.mode
        )

    @property
    def n_atoms(self) -> int:
        return int(self.atom_indices.size)

    @property
    def streaming(self) -> bool:
        return self.mode == STREAMING

    def estimate_bytes(self) -> int:
        return estimate_cache_bytes(len(self), self.n_atoms)

    def __len__(self) -> int:
        return len(self.frame_indices)

    def _read(self, position: int) -> np.ndarray:
        index = self.frame_indices[position]
        coords = np.asarray(self.source.read_frame(index, self.atom_indices), dtype=float)
        if coords.ndim != 2 or coords.shape[1] != 3 or coords.shape[0] != self.n_atoms:
            raise InputError(
                f"Frame {index} returned {coords.shape[0] if coords.ndim else 0} atoms, "
                f"expected {self.n_atoms}"
            )
        flat = coords.reshape(-1) * self.scale
        return center_at_origin(flat)

    def _materialize(self) -> np.ndarray:
        bulk = getattr(self.source, "read_frames", None)
        if bulk is None:
            frames = np.empty((len(self.frame_indices), 3 * self.n_atoms), dtype=float)
            for pos in range(len(self.frame_indices)):
                frames[pos] = self._read(pos)
        else:
            coords = np.asarray(bulk(self.frame_indices, self.atom_indices), dtype=float)
            expected = (len(self.frame_indices), self.n_atoms, 3)
            if coords.shape != expected:
                raise InputError(f"Frame source returned coordinates of shape {coords.shape}, expected {expected}")
            frames = center_frames(coords.reshape(len(self.frame_indices), -1) * self.scale)
        frames.flags.writeable = False
        return frames

    def frame(self, position: int) -> np.ndarray:
        """Centered flattened coordinates of the frame at ``position`` (row order)."""
        if position < 0 or position >= len(self):
            raise IndexError(f"cache position {position} out of range")
        if self._frames is not None:
            return self._frames[position]
        return self._read(position)

    __getitem__ = frame

    def block(self, start: int, stop: int) -> np.ndarray:
        """Centered frames ``start..stop-1`` as a (k, 3 * n_atoms) array."""
        start = max(0, start)
        stop = min(len(self), stop)
        if self._frames is not None:
            return self._frames[start:stop]
        if stop <= start:
            return np.empty((0, 3 * self.n_atoms), dtype=float)
        return np.stack([self._read(pos) for pos in range(start, stop)])

    def as_array(self) -> np.ndarray:
        return self.block(0, len(self))
