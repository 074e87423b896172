"""
Trajectory loading and matrix text I/O for FastRMSDs.

load_trajectory accepts multiple trajectory file inputs (a list, tuple,
comma-separated string or glob pattern), anything mdtraj.load understands.

The matrix layout written by write_matrix is what downstream tools read:

    # <provenance header>
    0.00 1.23 2.34
    1.23 0.00 0.98
    2.34 0.98 0.00

one row per line, values separated by a single space, fixed decimals.
"""
from __future__ import annotations

import glob
import io
from pathlib import Path
from typing import Optional, Sequence, TextIO, Tuple, Union

import mdtraj as md
import numpy as np

PathLike = Union[str, Path]

__all__ = ["load_trajectory", "format_matrix", "write_matrix", "read_matrix"]


def _expand_inputs(traj_input) -> list:
    if isinstance(traj_input, (list, tuple)):
        return [str(Path(f).resolve()) for f in traj_input]
    if isinstance(traj_input, (str, Path)):
        traj_str = str(traj_input)
        if "," in traj_str:
            return [s.strip() for s in traj_str.split(",") if s.strip()]
        if any(char in traj_str for char in ["*", "?", "["]):
            files = sorted(glob.glob(traj_str))
            if not files:
                raise ValueError(f"No files found matching the glob pattern: {traj_str}")
            return files
        return [traj_str]
    raise TypeError("traj_input must be a string, list, or tuple")


def load_trajectory(
    traj_input,
    top: PathLike,
    frames: Optional[Tuple[Optional[int], Optional[int], Optional[int]]] = None,
    atoms: Optional[Union[str, Sequence[int]]] = None,
) -> md.Trajectory:
    """
    Load an MD trajectory using MDTraj.

    Parameters
    ----------
    traj_input : str, Path, list or tuple
        A trajectory file path, a list/tuple of file paths, a comma-separated
        string, or a glob pattern.
    top : str or Path
        Path to the topology file.
    frames : (start, stop, stride) or None
        Optional slice applied after loading.
    atoms : str, sequence of int or None
        Optional MDTraj selection or atom indices; only those atoms are kept.

    Returns
    -------
    mdtraj.Trajectory
    """
    files = _expand_inputs(traj_input)
    top_path = str(Path(top).resolve())

    atom_indices = None
    if atoms is not None and not isinstance(atoms, str):
        atom_indices = np.asarray(atoms, dtype=int)
    elif atoms:
        topology = md.load_topology(top_path)
        atom_indices = topology.select(atoms)
        if atom_indices is None or len(atom_indices) == 0:
            raise ValueError(f"No atoms selected using selection: '{atoms}'")

    traj = md.load(files if len(files) > 1 else files[0], top=top_path, atom_indices=atom_indices)
    if frames is not None:
        start, stop, stride = frames
        traj = traj[start:stop:stride]
    return traj


def _single_line(header: str) -> str:
    return " ".join(str(header).splitlines()).strip()


def write_matrix(
    matrix,
    dest: Union[PathLike, TextIO],
    *,
    precision: int = 2,
    header: Optional[str] = None,
) -> None:
    """
    Serialize a 2-D matrix: an optional ``# header`` line, then one row per line.

    ``dest`` may be a path or an open text stream (e.g. ``sys.stdout``).
    """
    data = np.asarray(matrix, dtype=float)
    if data.ndim != 2:
        raise ValueError(f"matrix must be 2-D, got shape {data.shape}")
    if int(precision) < 0:
        raise ValueError("precision must be >= 0")

    kwargs = {"fmt": f"%.{int(precision)}f", "delimiter": " "}
    if header is not None:
        kwargs["header"] = _single_line(header)
        kwargs["comments"] = "# "

    if isinstance(dest, (str, Path)):
        path = Path(dest)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            np.savetxt(fh, data, **kwargs)
    else:
        np.savetxt(dest, data, **kwargs)


def format_matrix(matrix, *, precision: int = 2, header: Optional[str] = None) -> str:
    """Return the text that write_matrix would produce."""
    buf = io.StringIO()
    write_matrix(matrix, buf, precision=precision, header=header)
    return buf.getvalue()


def read_matrix(source: Union[PathLike, Sequence[str]]) -> np.ndarray:
    """Read a matrix written by write_matrix; header lines are skipped."""
    return np.loadtxt(source, comments="#", ndmin=2)
