# FastRMSDs/src/fastrmsds/analysis/rmsds.py
"""
Pair-wise RMSD Analysis Module

Computes the RMSD between every pair of frames of a trajectory after optimal
superposition (or, given a second system, between every frame of the first
and every frame of the second). The selected atoms of each frame are cached
and centered once; the resulting matrix is saved in the fixed-precision text
layout and shown as a heatmap.

Block structure in the matrix is indicative of sets of similar conformations;
the presence (or lack) of cross-peaks is diagnostic of sampling quality.
"""
from __future__ import annotations

from dataclasses import fields
from pathlib import Path
from typing import Dict, Optional, Sequence, Union
import logging
import threading

import numpy as np
import mdtraj as md

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from .base import BaseAnalysis, AnalysisError
from .cache import CoordinateCache
from .frames import ArrayFrameSource, TrajectoryFrameSource, select_atoms
from .pairwise import PairwiseMatrixBuilder
from ..config import RunConfig
from ..linalg import SVDBackend
from ..utils.logging import invocation_header
from ..utils.options import OptionsForwarder
from ..utils.plotting import style_heatmap
from ..utils.ranges import resolve_frame_indices

logger = logging.getLogger(__name__)

_RUN_OPTIONS = {f.name for f in fields(RunConfig)}


def as_frame_source(obj):
    """Wrap an mdtraj.Trajectory or coordinate array; frame sources pass through."""
    if isinstance(obj, md.Trajectory):
        return TrajectoryFrameSource(obj)
    if isinstance(obj, np.ndarray):
        return ArrayFrameSource(obj)
    if hasattr(obj, "read_frame") and hasattr(obj, "n_frames"):
        return obj
    raise TypeError(f"Cannot use {type(obj).__name__} as a frame source")


class RMSDsAnalysis(BaseAnalysis):
    """
    Pair-wise RMSD matrix for one trajectory, or between two trajectories.
    """

    _ALIASES = {
        "selection": "atoms",
        "atom_indices": "atoms",
        "sel1": "atoms",
        "sel2": "other_atoms",
        "skip1": "skip",
        "skip2": "other_skip",
        "range": "range_spec",
        "range1": "range_spec",
        "range2": "other_range",
        "cache_mode": "cache",
        "threads": "workers",
    }

    def __init__(
        self,
        source,
        atoms=None,
        *,
        frames=None,
        skip: int = 0,
        range_spec: Optional[str] = None,
        other=None,
        other_atoms=None,
        other_frames=None,
        other_skip: int = 0,
        other_range: Optional[str] = None,
        config: Optional[RunConfig] = None,
        header: Optional[str] = None,
        backend: Optional[SVDBackend] = None,
        save: bool = True,
        plot: bool = True,
        strict: bool = False,
        **kwargs,
    ):
        """
        Parameters
        ----------
        source : mdtraj.Trajectory, ndarray or frame source
            Frames of the first system (coordinates in nm).
        atoms : str, sequence of int or None
            MDTraj selection string or explicit atom indices. If None, all atoms are used.
            Aliases: selection, atom_indices, sel1
        frames : (start, stop, stride) tuple or list of int, optional
            Frame subset of the first system.
        skip : int
            Drop the first ``skip`` selected frames. Alias: skip1
        range_spec : str, optional
            Matlab-style frame ranges, e.g. "0:2:100,150". Aliases: range, range1
        other : same types as ``source``, optional
            Second system; the result becomes an N1 x N2 matrix.
        other_atoms, other_frames, other_skip, other_range
            Selection options of the second system. The two selections must
            have the same number of atoms, matched in order.
        config : RunConfig, optional
            Run configuration. Any RunConfig field passed as a keyword
            (e.g. ``workers=4``, ``precision=3``) overrides it.
        header : str, optional
            Provenance line for the saved matrix; defaults to the invocation header.
        backend : SVDBackend, optional
            Decomposition backend.
        save, plot : bool
            Write ``rmsds.asc`` / ``rmsds.png`` under the output directory.
        strict : bool
            If True, raise errors for unknown options. If False, log warnings.
        kwargs : dict
            ``output`` plus RunConfig overrides.
        """
        warn_unknown = kwargs.pop("_warn_unknown", False)

        analysis_opts = {"atoms": atoms, "skip": skip, "range_spec": range_spec,
                         "other_atoms": other_atoms, "other_skip": other_skip,
                         "other_range": other_range}
        analysis_opts.update(kwargs)

        forwarder = OptionsForwarder(aliases=self._ALIASES, strict=strict)
        resolved = forwarder.apply_aliases(analysis_opts)
        resolved = forwarder.filter_known(
            resolved,
            _RUN_OPTIONS | {"output", "atoms", "other_atoms", "range_spec",
                            "other_range", "skip", "other_skip"},
            context="rmsds",
            warn=warn_unknown,
        )

        overrides = {k: v for k, v in resolved.items() if k in _RUN_OPTIONS}
        base_config = config or RunConfig()
        self.config = base_config.with_options(**overrides) if overrides else base_config

        super().__init__(as_frame_source(source), output=resolved.get("output"))
        self.atoms = resolved.get("atoms")
        self.frames = frames
        self.skip = int(resolved.get("skip") or 0)
        self.range_spec = resolved.get("range_spec")

        self.other = as_frame_source(other) if other is not None else None
        self.other_atoms = resolved.get("other_atoms")
        self.other_frames = other_frames
        self.other_skip = int(resolved.get("other_skip") or 0)
        self.other_range = resolved.get("other_range")

        self.header = header
        self.backend = backend
        self.save = bool(save)
        self.make_plot = bool(plot)
        self.strict = strict

        self._cancel = threading.Event()
        self.cache: Optional[CoordinateCache] = None
        self.other_cache: Optional[CoordinateCache] = None
        self.builder: Optional[PairwiseMatrixBuilder] = None
        self.data: Optional[np.ndarray] = None
        self.results: Dict[str, object] = {}

    def cancel(self) -> None:
        """Request cooperative cancellation; run() then raises RunCancelled."""
        self._cancel.set()

    def _build_cache(self, source, atoms, frames, skip, range_spec) -> CoordinateCache:
        atom_indices = select_atoms(getattr(source, "topology", None), atoms, source.n_atoms)
        frame_indices = resolve_frame_indices(source.n_frames, frames, skip=skip, range_spec=range_spec)
        if atoms is None:
            described = "all atoms"
        elif isinstance(atoms, str):
            described = atoms
        else:
            described = "explicit indices"
        logger.info(
            "%s: %d frames, %d atoms selected (%s)",
            source.label, len(frame_indices), len(atom_indices), described,
        )
        return CoordinateCache(source, frame_indices, atom_indices, self.config)

    def run(self) -> Dict[str, object]:
        """
        Compute the pair-wise RMSD matrix.

        Returns
        -------
        dict
            {"rmsds": (N, N) or (N1, N2) matrix,
             "frames": frame indices of the rows,
             "other_frames": frame indices of the columns (two-system runs only)}
        """
        try:
            self.cache = self._build_cache(self.source, self.atoms, self.frames, self.skip, self.range_spec)
            if self.other is not None:
                self.other_cache = self._build_cache(
                    self.other, self.other_atoms, self.other_frames, self.other_skip, self.other_range
                )

            self.builder = PairwiseMatrixBuilder(
                self.cache,
                self.other_cache,
                self.config,
                backend=self.backend,
                cancel_event=self._cancel,
            )
            matrix = self.builder.build()

            self.data = matrix
            self.results = {
                "rmsds": matrix,
                "frames": np.asarray(self.cache.frame_indices, dtype=int),
            }
            if self.other_cache is not None:
                self.results["other_frames"] = np.asarray(self.other_cache.frame_indices, dtype=int)

            if self.header is None:
                self.header = invocation_header()
            if self.save and not self.config.noout:
                path = self._save_data(matrix, "rmsds", header=self.header, precision=self.config.precision)
                logger.info("RMSD matrix written to %s", path)
            if self.make_plot:
                self.plot()

            return self.results
        except AnalysisError:
            raise
        except Exception as e:
            raise AnalysisError(f"Pair-wise RMSD analysis failed: {e}") from e

    def plot(
        self,
        data: Optional[Union[Sequence[Sequence[float]], np.ndarray]] = None,
        *,
        cmap: str = "viridis",
        figsize=(10, 8),
        title: str = "Pair-wise RMSD",
        xlabel: Optional[str] = None,
        ylabel: str = "Frame",
        max_ticks: int = 8,
    ) -> Path:
        """
        Heatmap of the RMSD matrix with frame-index axes and a colorbar.

        Returns
        -------
        Path
            File path of the saved plot image.
        """
        if data is None:
            data = self.data
        if data is None:
            raise AnalysisError("No RMSD matrix available to plot. Run the analysis first.")

        m = np.asarray(data, dtype=float)
        if m.ndim != 2:
            raise AnalysisError(f"RMSD matrix must be 2-D, got shape {m.shape}")
        unit = "Å" if self.config.units == "angstrom" else "nm"

        fig, ax = plt.subplots(figsize=figsize)
        im = ax.imshow(m, cmap=cmap, origin="lower", interpolation="nearest", aspect="auto")
        cbar = fig.colorbar(im, ax=ax)
        cbar.set_label(f"RMSD ({unit})")

        ax.set_title(title)
        ax.set_xlabel(xlabel or ("Frame" if self.other is None else "Frame (system 2)"))
        ax.set_ylabel(ylabel)
        style_heatmap(ax, m.shape[0], m.shape[1], max_ticks=max_ticks)

        fig.tight_layout()
        outpath = self._save_plot(fig, "rmsds")
        plt.close(fig)
        return Path(outpath)
