"""
Frame sources: the trajectory side of the coordinate cache.

A frame source knows how many frames it has, which topology they belong to,
and how to return the coordinates of a pre-resolved, ordered atom selection
at a zero-based frame index. Coordinates come back in nm as (n_atoms, 3).

- ArrayFrameSource wraps an in-memory (n_frames, n_atoms, 3) array.
- TrajectoryFrameSource wraps an mdtraj.Trajectory already in memory.
- FileFrameSource seeks a trajectory file on every read (md.load_frame), so
  nothing but the current frame is held in memory. Its read_frames() makes
  one chunked pass over the file for the materialized cache.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union
import logging

import numpy as np
import mdtraj as md

from .base import InputError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
Selection = Union[None, str, Sequence[int], np.ndarray]

__all__ = ["ArrayFrameSource", "TrajectoryFrameSource", "FileFrameSource", "select_atoms"]


def select_atoms(topology: Optional[md.Topology], selection: Selection, n_atoms: int) -> np.ndarray:
    """
    Resolve a selection to an ordered array of atom indices.

    ``selection`` is an MDTraj selection string, an explicit index sequence,
    or None/"" for every atom. A selection that matches nothing is an InputError.
    """
    if selection is None or (isinstance(selection, str) and not selection.strip()):
        indices = np.arange(n_atoms)
    elif isinstance(selection, str):
        if topology is None:
            raise InputError(f"Cannot apply selection '{selection}' without a topology")
        try:
            indices = topology.select(selection)
        except Exception as e:
            raise InputError(f"Invalid atom selection '{selection}': {e}") from e
    else:
        indices = np.asarray(selection, dtype=int).ravel()
        if indices.size and (indices.min() < 0 or indices.max() >= n_atoms):
            raise InputError(f"Atom indices out of range for a system of {n_atoms} atoms")
    if indices is None or len(indices) == 0:
        raise InputError(f"No atoms selected using selection: '{selection}'")
    return np.asarray(indices, dtype=int)


def _check_indices(indices: Sequence[int], n_frames: int) -> List[int]:
    out = [int(i) for i in indices]
    for i in out:
        if i < 0 or i >= n_frames:
            raise InputError(f"Cannot seek to frame {i} (trajectory has {n_frames} frames)")
    return out


class ArrayFrameSource:
    def __init__(self, xyz, topology: Optional[md.Topology] = None):
        arr = np.asarray(xyz, dtype=float)
        if arr.ndim == 2:
            arr = arr[np.newaxis]
        if arr.ndim != 3 or arr.shape[-1] != 3:
            raise InputError(f"coordinates must have shape (n_frames, n_atoms, 3), got {arr.shape}")
        self.xyz = arr
        self.topology = topology

    @property
    def n_frames(self) -> int:
        return int(self.xyz.shape[0])

    @property
    def n_atoms(self) -> int:
        return int(self.xyz.shape[1])

    @property
    def label(self) -> str:
        return f"<{self.n_frames} in-memory frames>"

    def read_frame(self, index: int, atom_indices: Sequence[int]) -> np.ndarray:
        (index,) = _check_indices([index], self.n_frames)
        try:
            return self.xyz[index][np.asarray(atom_indices, dtype=int)]
        except IndexError as e:
            raise InputError(f"Frame {index}: atom selection out of range: {e}") from e

    def read_frames(self, indices: Sequence[int], atom_indices: Sequence[int]) -> np.ndarray:
        idx = _check_indices(indices, self.n_frames)
        try:
            return self.xyz[idx][:, np.asarray(atom_indices, dtype=int)]
        except IndexError as e:
            raise InputError(f"Atom selection out of range: {e}") from e


class TrajectoryFrameSource(ArrayFrameSource):
    def __init__(self, traj: md.Trajectory, label: Optional[str] = None):
        super().__init__(traj.xyz, traj.topology)
        self.traj = traj
        self._label = label

    @property
    def label(self) -> str:
        return self._label or f"<mdtraj.Trajectory with {self.n_frames} frames>"


class FileFrameSource:
    def __init__(self, traj_file: PathLike, top_file: PathLike, *, chunk: int = 500):
        self.path = str(Path(traj_file).resolve())
        if not Path(self.path).exists():
            raise InputError(f"Trajectory file not found: {self.path}")
        try:
            self.topology = md.load_topology(str(Path(top_file).resolve()))
        except Exception as e:
            raise InputError(f"Failed to load topology '{top_file}': {e}") from e
        self.chunk = int(chunk)
        self._n_frames: Optional[int] = None

    @property
    def label(self) -> str:
        return self.path

    @property
    def n_atoms(self) -> int:
        return int(self.topology.n_atoms)

    @property
    def n_frames(self) -> int:
        if self._n_frames is None:
            try:
                with md.open(self.path) as fh:
                    self._n_frames = int(len(fh))
            except (TypeError, NotImplementedError) as e:
                raise InputError(f"Format of '{self.path}' does not support frame seeking: {e}") from e
            except (IOError, OSError, ValueError) as e:
                raise InputError(f"Cannot open trajectory '{self.path}': {e}") from e
        return self._n_frames

    def read_frame(self, index: int, atom_indices: Sequence[int]) -> np.ndarray:
        (index,) = _check_indices([index], self.n_frames)
        try:
            frame = md.load_frame(
                self.path,
                index,
                top=self.topology,
                atom_indices=np.asarray(atom_indices, dtype=int),
            )
        except (IndexError, IOError, OSError, ValueError) as e:
            raise InputError(f"Cannot read frame {index} from '{self.path}': {e}") from e
        return frame.xyz[0]

    def read_frames(self, indices: Sequence[int], atom_indices: Sequence[int]) -> np.ndarray:
        idx = _check_indices(indices, self.n_frames)
        atoms = np.asarray(atom_indices, dtype=int)
        out = np.empty((len(idx), atoms.size, 3), dtype=float)
        if not idx:
            return out

        wanted: Dict[int, List[int]] = {}
        for pos, i in enumerate(idx):
            wanted.setdefault(i, []).append(pos)
        last = max(wanted)
        filled = 0

        offset = 0
        try:
            for chunk in md.iterload(self.path, top=self.topology, atom_indices=atoms, chunk=self.chunk):
                for local in range(chunk.n_frames):
                    for pos in wanted.get(offset + local, ()):
                        out[pos] = chunk.xyz[local]
                        filled += 1
                offset += chunk.n_frames
                if offset > last:
                    break
        except (IOError, OSError, ValueError) as e:
            raise InputError(f"Cannot read frames from '{self.path}': {e}") from e

        if filled != len(idx):
            raise InputError(f"Only {filled} of {len(idx)} requested frames could be read from '{self.path}'")
        return out
