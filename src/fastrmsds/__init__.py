# FastRMSDs/src/fastrmsds/__init__.py
"""
FastRMSDs – pair-wise RMSD matrices for MD trajectories.

FastRMSDs Package Initialization

Instantiate with trajectory/topology and optional frame/atom selection, or
pass a system configuration (YAML/JSON path or dict) with the same keys you'd
use on the CLI (trajectory/topology or traj/top, frames, skip, range, atoms,
options).

    from fastrmsds import FastRMSDs
    fr = FastRMSDs("sim.dcd", "model.pdb", atoms="name CA")
    result = fr.rmsds(workers=4)
    result.data          # (N, N) RMSD matrix in Å
"""

from __future__ import annotations

from dataclasses import fields
from typing import Optional, Tuple, Union, Sequence, Mapping, Any, Dict, List
from pathlib import Path
import logging

import mdtraj as md

from .analysis import rmsds
from .analysis.base import (
    AnalysisError,
    InputError,
    NumericalError,
    RunCancelled,
    CacheMemoryWarning,
)
from .analysis.frames import FileFrameSource, TrajectoryFrameSource, select_atoms
from .analysis.superpose import superposition_rmsd, superpose, optimal_rotation
from .config import RunConfig, load_config
from .utils import load_trajectory, write_matrix, read_matrix
from .utils.io import _expand_inputs
from .utils.logging import setup_library_logging, log_run_header  # convenient re-exports

# -----------------------------------------------------------------------------
# Package version
# -----------------------------------------------------------------------------
try:
    from importlib.metadata import version as _pkg_version, PackageNotFoundError
except ImportError:  # pragma: no cover
    _pkg_version = None  # type: ignore
    PackageNotFoundError = Exception  # type: ignore


def _resolve_version() -> str:
    for dist_name in ("fastrmsds", "FastRMSDs"):
        try:
            if _pkg_version:
                return _pkg_version(dist_name)
        except PackageNotFoundError:
            continue
    return "0+unknown"


__version__ = _resolve_version()

# -----------------------------------------------------------------------------
# Package logging: install a NullHandler so library users don't get warnings.
# -----------------------------------------------------------------------------
_pkg_logger = logging.getLogger("fastrmsds")
if not _pkg_logger.handlers:
    _pkg_logger.addHandler(logging.NullHandler())

RMSDsAnalysis = rmsds.RMSDsAnalysis

__all__ = [
    "__version__",
    "FastRMSDs",
    "RMSDsAnalysis",
    "RunConfig",
    "load_config",
    "AnalysisError",
    "InputError",
    "NumericalError",
    "RunCancelled",
    "CacheMemoryWarning",
    "superposition_rmsd",
    "superpose",
    "optimal_rotation",
    "load_trajectory",
    "write_matrix",
    "read_matrix",
    "setup_library_logging",
    "log_run_header",
]

_RUN_OPTIONS = {f.name for f in fields(RunConfig)}


def _normalize_frames(
    frames: Optional[
        Union[
            str,
            Sequence[Union[int, None]],
            Tuple[Optional[int], Optional[int], Optional[int]],
        ]
    ]
) -> Optional[Tuple[Optional[int], Optional[int], int]]:
    """
    Normalize (start, stop, stride) for slicing.

    Accepts:
      - None
      - a 3-tuple/list of (start, stop, stride)
      - a string "start,stop,stride" OR "start:stop:stride"
    """
    if frames is None:
        return None

    if isinstance(frames, str):
        s = frames.strip()
        parts = s.split(",") if "," in s else s.split(":")
        if len(parts) != 3:
            raise TypeError(
                "frames must be a 3-tuple/list or 'start,stop,stride' (commas or colons)."
            )
        raw = []
        for i, tok in enumerate(parts):
            tok = tok.strip()
            if i < 2 and tok.lower() in {"", "none"}:
                raw.append(None)
            else:
                raw.append(tok)
        frames = raw

    if not isinstance(frames, (list, tuple)) or len(frames) != 3:
        raise TypeError("frames must be None or a 3-tuple/list: (start, stop, stride)")

    start, stop, stride = frames

    def _int_or_none(x):
        if x is None:
            return None
        try:
            return int(x)
        except (TypeError, ValueError) as e:
            raise TypeError("frames elements must be int or None") from e

    start_i = _int_or_none(start)
    stop_i = _int_or_none(stop)
    stride_i = _int_or_none(stride)

    if stride_i is None or stride_i == 0:
        stride_i = 1
    if stride_i < 0:
        stride_i = -stride_i

    return (start_i, stop_i, stride_i)


def _load_system_config(system: Union[str, Path, Mapping[str, Any]]) -> Dict[str, Any]:
    """Load a YAML/JSON system config or accept a pre-built mapping. Returns a dict."""
    if isinstance(system, Mapping):
        cfg = dict(system)
    else:
        p = Path(system).expanduser()
        text = p.read_text(encoding="utf-8")
        if p.suffix.lower() in {".yml", ".yaml"}:
            import yaml

            cfg = yaml.safe_load(text) or {}
        else:
            import json

            cfg = json.loads(text) or {}

    if not isinstance(cfg, dict):
        raise TypeError("system config must be a mapping/object")

    # Aliases for CLI/API parity
    aliases = {
        "traj": "trajectory",
        "top": "topology",
        "model": "topology",
        "selection": "atoms",
        "sel": "atoms",
    }
    for src, dst in aliases.items():
        if src in cfg and dst not in cfg:
            cfg[dst] = cfg[src]

    return cfg


def _as_file_list(traj_file) -> List[str]:
    if isinstance(traj_file, (list, tuple)):
        if len(traj_file) == 0:
            raise ValueError("Empty trajectory file list provided")
        return [str(t) for t in traj_file]
    # comma-separated lists and glob patterns, as load_trajectory accepts
    return _expand_inputs(traj_file)


class FastRMSDs:
    """
    Main API class for pair-wise RMSD matrices.

    You may construct with explicit traj/top or a `system` config (YAML/JSON path or dict).
    Keyword arguments named like RunConfig fields (cache, workers, precision, ...)
    become the run configuration of this instance.
    """

    def __init__(
        self,
        traj_file: Optional[Union[str, Path, Sequence[Union[str, Path]]]] = None,
        top_file: Optional[Union[str, Path]] = None,
        frames: Optional[
            Union[
                str,
                Sequence[Union[int, None]],
                Tuple[Optional[int], Optional[int], Optional[int]],
            ]
        ] = None,
        atoms: Optional[str] = None,
        *,
        skip: int = 0,
        range_spec: Optional[str] = None,
        system: Optional[Union[str, Path, Mapping[str, Any]]] = None,
        config: Optional[RunConfig] = None,
        **kwargs: Any,
    ):
        # Accept keyword aliases (trajectory/topology or traj/top)
        if traj_file is None:
            traj_file = kwargs.pop("trajectory", None) or kwargs.pop("traj", None)
        if top_file is None:
            top_file = kwargs.pop("topology", None) or kwargs.pop("top", None)

        run_options: Dict[str, Any] = {}
        self._system_file = None
        if system is not None:
            sys_cfg = _load_system_config(system)
            if traj_file is None:
                traj_file = sys_cfg.get("trajectory")
            if top_file is None:
                top_file = sys_cfg.get("topology")
            if frames is None and "frames" in sys_cfg:
                frames = sys_cfg["frames"]
            if atoms is None and "atoms" in sys_cfg:
                atoms = sys_cfg["atoms"]
            if not skip and "skip" in sys_cfg:
                skip = int(sys_cfg["skip"])
            if range_spec is None and "range" in sys_cfg:
                range_spec = str(sys_cfg["range"])
            run_options.update(sys_cfg.get("options") or {})
            self._system_file = system if not isinstance(system, Mapping) else None

        if traj_file is None or top_file is None:
            raise ValueError(
                "Both trajectory and topology are required. Provide (traj_file, top_file) "
                "or use system=<yaml/json> containing 'trajectory' and 'topology'."
            )

        run_options.update({k: kwargs.pop(k) for k in list(kwargs) if k in _RUN_OPTIONS})
        if kwargs:
            raise TypeError(f"Unexpected keyword arguments: {sorted(kwargs)}")
        if config is None:
            config = RunConfig.from_mapping(run_options)
        elif run_options:
            config = config.with_options(**run_options)
        self.config = config

        self.traj_files = _as_file_list(traj_file)
        self.top_file = str(top_file)
        self.topology = md.load_topology(str(Path(self.top_file).resolve()))

        # frames: slice triple (tuple/"a,b,c") or explicit list of indices
        if isinstance(frames, list) and len(frames) != 3:
            self.frames = [int(f) for f in frames]
        else:
            self.frames = _normalize_frames(frames)
        self.skip = int(skip)
        self.range_spec = range_spec
        self.default_atoms = atoms

    def _get_atoms(self, specific_atoms: Optional[str]) -> Optional[str]:
        return specific_atoms if specific_atoms is not None else self.default_atoms

    def frame_source(self, atom_indices=None):
        """
        Frame source for this system.

        A single trajectory file is read through FileFrameSource (seekable, so
        both cache modes work and nothing is loaded up front). Several files are
        concatenated in memory, keeping only ``atom_indices``.
        """
        if len(self.traj_files) == 1:
            return FileFrameSource(self.traj_files[0], self.top_file)
        if self.config.streaming:
            raise InputError("The streaming cache needs a single trajectory file")
        try:
            traj = load_trajectory(self.traj_files, self.top_file, atoms=atom_indices)
        except (IOError, OSError, ValueError) as e:
            raise InputError(f"Cannot load trajectories {', '.join(self.traj_files)}: {e}") from e
        return TrajectoryFrameSource(traj, label=",".join(self.traj_files))

    def _analysis_inputs(self, atoms: Optional[str]) -> Dict[str, Any]:
        atom_indices = select_atoms(self.topology, self._get_atoms(atoms), self.topology.n_atoms)
        source = self.frame_source(atom_indices)
        if isinstance(source, TrajectoryFrameSource):
            # the concatenated trajectory already holds only the selection
            atom_indices = None
        return {
            "source": source,
            "atoms": atom_indices,
            "frames": self.frames,
            "skip": self.skip,
            "range_spec": self.range_spec,
        }

    # ----------------------------- Analysis ------------------------------------

    def rmsds(
        self,
        atoms: Optional[str] = None,
        other: Optional["FastRMSDs"] = None,
        other_atoms: Optional[str] = None,
        **kwargs,
    ) -> RMSDsAnalysis:
        """
        Run the pair-wise RMSD analysis and return the finished RMSDsAnalysis.

        ``other`` switches to the two-system comparison; its own default
        selection applies unless ``other_atoms`` is given. Remaining keyword
        arguments go to RMSDsAnalysis (output, save, plot, header, RunConfig fields).
        """
        mine = self._analysis_inputs(atoms)
        params: Dict[str, Any] = dict(mine)
        if other is not None:
            theirs = other._analysis_inputs(other_atoms)
            params.update(
                other=theirs["source"],
                other_atoms=theirs["atoms"],
                other_frames=theirs["frames"],
                other_skip=theirs["skip"],
                other_range=theirs["range_spec"],
            )
        source = params.pop("source")
        params.setdefault("config", self.config)
        params.update(kwargs)
        analysis = RMSDsAnalysis(source, **params)
        analysis.run()
        return analysis
