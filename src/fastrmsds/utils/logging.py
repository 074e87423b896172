# FastRMSDs/src/fastrmsds/utils/logging.py
"""
Library logging helpers.

- setup_library_logging(): attach a stream (and optional file) handler to the
  'fastrmsds' logger without duplicating handlers on repeated calls.
- get_runtime_versions() / log_run_header(): record the software stack of a run.
- invocation_header(): the provenance line written above every matrix.
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence
import getpass
import importlib
import logging
import os
import platform
import sys

__all__ = [
    "setup_library_logging",
    "get_runtime_versions",
    "log_run_header",
    "invocation_header",
]

_LOGGER_NAME = "fastrmsds"
_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

# display name -> import name
_CORE_LIBS: Dict[str, str] = {
    "numpy": "numpy",
    "mdtraj": "mdtraj",
    "matplotlib": "matplotlib",
    "psutil": "psutil",
    "PyYAML": "yaml",
}


def _safe_import_version(module_name: str) -> str:
    try:
        mod = importlib.import_module(module_name)
    except Exception:
        return "n/a"
    return str(getattr(mod, "__version__", "unknown"))


def _package_version() -> str:
    pkg = sys.modules.get("fastrmsds")
    v = getattr(pkg, "__version__", None) if pkg is not None else None
    if v:
        return str(v)
    try:
        from importlib.metadata import version, PackageNotFoundError
    except ImportError:  # pragma: no cover
        return "unknown"
    try:
        return version("fastrmsds")
    except PackageNotFoundError:
        return "unknown"


def get_runtime_versions(extras: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Collect versions of the package, interpreter, OS and core libraries.

    ``extras`` maps display names to import names; missing modules report "n/a".
    """
    versions: Dict[str, str] = {
        "fastrmsds": _package_version(),
        "python": platform.python_version(),
        "os": f"{platform.system()} {platform.release()}".strip(),
    }
    for name, module_name in _CORE_LIBS.items():
        versions[name] = _safe_import_version(module_name)
    for name, module_name in (extras or {}).items():
        versions[name] = _safe_import_version(module_name)
    return versions


def log_run_header(
    logger: Optional[logging.Logger] = None,
    extras: Optional[Mapping[str, str]] = None,
    level: int = logging.INFO,
) -> Dict[str, str]:
    """Log a two-line version header and return the collected versions."""
    lg = logger or logging.getLogger(_LOGGER_NAME)
    v = get_runtime_versions(extras)
    lg.log(level, "FastRMSDs %s | Python %s | %s", v["fastrmsds"], v["python"], v["os"])
    libs = [k for k in v if k not in ("fastrmsds", "python", "os")]
    lg.log(level, "Libraries: %s", ", ".join(f"{k} {v[k]}" for k in libs))
    return v


def setup_library_logging(
    level: int = logging.INFO,
    logfile: Optional[str] = None,
    stream=None,
) -> logging.Logger:
    """
    Configure the 'fastrmsds' logger. Idempotent: one stream handler at most,
    and one file handler per distinct log file.
    """
    lg = logging.getLogger(_LOGGER_NAME)
    lg.setLevel(level)
    formatter = logging.Formatter(_FORMAT)

    has_stream = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in lg.handlers
    )
    if not has_stream:
        sh = logging.StreamHandler(stream or sys.stderr)
        sh.setFormatter(formatter)
        lg.addHandler(sh)

    if logfile:
        target = str(Path(logfile).resolve())
        known = {
            getattr(h, "baseFilename", None)
            for h in lg.handlers
            if isinstance(h, logging.FileHandler)
        }
        if target not in known:
            Path(target).parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(target, mode="w")
            fh.setFormatter(formatter)
            lg.addHandler(fh)

    for h in lg.handlers:
        if not isinstance(h, logging.NullHandler):
            h.setLevel(level)
    return lg


def invocation_header(argv: Optional[Sequence[str]] = None) -> str:
    """
    Provenance text for the matrix header: command line, user, time, cwd, version.

    Example: ``fastrmsds model.pdb sim.dcd - alice (Sat Oct 17 10:01:02 2026) {/data} [fastrmsds 0.1.0]``
    """
    args = list(sys.argv if argv is None else argv)
    if args:
        args[0] = Path(args[0]).name
    try:
        user = getpass.getuser()
    except Exception:
        user = "unknown"
    stamp = datetime.now().strftime("%a %b %d %H:%M:%S %Y")
    command = " ".join(args)
    return f"{command} - {user} ({stamp}) {{{os.getcwd()}}} [fastrmsds {_package_version()}]"
