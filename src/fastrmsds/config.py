# FastRMSDs/src/fastrmsds/config.py
"""
Run configuration.

A RunConfig value is built once (from keyword arguments, a mapping, or a
YAML/JSON file) and handed to the coordinate cache, the matrix builder and
the progress reporter. Nothing reads configuration from module globals.
"""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Union
import json
import logging

from .utils.options import OptionsForwarder

logger = logging.getLogger(__name__)

MATERIALIZED = "materialized"
STREAMING = "streaming"

# mdtraj coordinates are in nm
UNIT_SCALE: Dict[str, float] = {"nm": 1.0, "angstrom": 10.0}

_ALIASES = {
    "cache_mode": "cache",
    "threshold": "memory_fraction",
    "memory_warning_fraction": "memory_fraction",
    "step": "progress_step",
    "threads": "workers",
    "n_workers": "workers",
    "reflection": "allow_reflection",
    "unit": "units",
}


def _coerce_cache_mode(value: Any) -> str:
    if isinstance(value, bool):
        return MATERIALIZED if value else STREAMING
    if isinstance(value, (int, float)):
        return MATERIALIZED if value else STREAMING
    s = str(value).strip().lower()
    if s in {"materialized", "memory", "1", "true", "yes", "on"}:
        return MATERIALIZED
    if s in {"streaming", "stream", "disk", "0", "false", "no", "off"}:
        return STREAMING
    raise ValueError(f"cache must be 'materialized' or 'streaming', got {value!r}")


@dataclass(frozen=True)
class RunConfig:
    """Configuration consumed by a pairwise RMSD run."""

    cache: str = MATERIALIZED
    memory_fraction: float = 2.0 / 3.0
    auto_stream: bool = False
    progress_step: float = 0.1
    precision: int = 2
    workers: int = 1
    allow_reflection: bool = False
    units: str = "angstrom"
    verbose: bool = True
    noout: bool = False

    def __post_init__(self):
        object.__setattr__(self, "cache", _coerce_cache_mode(self.cache))
        units = str(self.units).strip().lower()
        if units in {"a", "ang", "angstroms"}:
            units = "angstrom"
        if units not in UNIT_SCALE:
            raise ValueError(f"units must be one of {sorted(UNIT_SCALE)}, got {self.units!r}")
        object.__setattr__(self, "units", units)

        if not 0.0 < float(self.memory_fraction) <= 1.0:
            raise ValueError("memory_fraction must be in (0, 1]")
        if not 0.0 < float(self.progress_step) <= 1.0:
            raise ValueError("progress_step must be in (0, 1]")
        if int(self.precision) < 0:
            raise ValueError("precision must be >= 0")
        if int(self.workers) < 1:
            raise ValueError("workers must be >= 1")

        object.__setattr__(self, "memory_fraction", float(self.memory_fraction))
        object.__setattr__(self, "progress_step", float(self.progress_step))
        object.__setattr__(self, "precision", int(self.precision))
        object.__setattr__(self, "workers", int(self.workers))
        for flag in ("auto_stream", "allow_reflection", "verbose", "noout"):
            object.__setattr__(self, flag, bool(getattr(self, flag)))

    @property
    def streaming(self) -> bool:
        return self.cache == STREAMING

    @property
    def length_scale(self) -> float:
        return UNIT_SCALE[self.units]

    def with_options(self, **changes: Any) -> "RunConfig":
        return replace(self, **changes)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None, *, strict: bool = False) -> "RunConfig":
        """Build a RunConfig from a plain mapping, resolving aliases and dropping unknown keys."""
        if not mapping:
            return cls()
        if not isinstance(mapping, Mapping):
            raise TypeError("run options must be a mapping")
        forwarder = OptionsForwarder(aliases=_ALIASES, strict=strict)
        resolved = forwarder.apply_aliases(dict(mapping))
        known = {f.name for f in fields(cls)}
        resolved = forwarder.filter_known(resolved, known, context="rmsds")
        return cls(**resolved)


def load_config(path: Union[str, Path], *, strict: bool = False) -> RunConfig:
    """Load a RunConfig from a .yml/.yaml or .json file."""
    p = Path(path).expanduser()
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yml", ".yaml"}:
        import yaml

        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text) or {}
    if not isinstance(data, dict):
        raise TypeError(f"{p}: run options must be a mapping")
    logger.debug("Loaded run options from %s: %s", p, data)
    return RunConfig.from_mapping(data, strict=strict)
