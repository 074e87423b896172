from __future__ import annotations

import sys
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

import argparse

from ..config import RunConfig, load_config


def setup_logging(verbose: bool, quiet: bool = False, logfile: Optional[str] = None) -> logging.Logger:
    """
    Root logging for the console script. Records go to stderr (stdout may carry
    the matrix) and, optionally, to a log file.
    """
    level = logging.DEBUG if verbose else (logging.WARNING if quiet else logging.INFO)
    handlers: list = [logging.StreamHandler(sys.stderr)]
    if logfile:
        Path(logfile).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(logfile, mode="w"))
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )
    logger = logging.getLogger()
    logger.info("FastRMSDs command: %s", " ".join(sys.argv))
    return logger


def coerce_scalar(s: str) -> Any:
    """Best-effort type coercion for CLI string values."""
    sl = s.lower()
    if sl == "none":
        return None
    if sl in ("true", "yes", "on"):
        return True
    if sl in ("false", "no", "off"):
        return False
    try:
        if "." in s:
            return float(s)
        return int(s)
    except ValueError:
        return s


def parse_opt_pairs(pairs) -> Dict[str, Any]:
    """
    Parse repeated --opt KEY=VALUE into a run options dict.
    Example: --opt workers=4 --opt cache=streaming -> {"workers": 4, "cache": "streaming"}
    """
    out: Dict[str, Any] = {}
    for item in pairs or []:
        if "=" not in item:
            raise SystemExit(f"--opt expects 'key=value', got: {item}")
        key, value = item.split("=", 1)
        out[key.strip()] = coerce_scalar(value.strip())
    return out


def build_config(args: argparse.Namespace) -> RunConfig:
    """
    Run configuration with precedence: defaults < --config file < --opt < explicit flags.
    """
    try:
        config = load_config(args.config, strict=args.strict) if args.config else RunConfig()
        opts = parse_opt_pairs(args.opt)
        if opts:
            config = RunConfig.from_mapping({**asdict(config), **opts}, strict=args.strict)

        flags: Dict[str, Any] = {}
        if args.cache is not None:
            flags["cache"] = bool(args.cache)
        for name in ("precision", "workers", "progress_step", "memory_fraction", "units"):
            value = getattr(args, name)
            if value is not None:
                flags[name] = value
        for name in ("noout", "auto_stream", "allow_reflection"):
            if getattr(args, name):
                flags[name] = True
        if args.quiet:
            flags["verbose"] = False
        return config.with_options(**flags) if flags else config
    except (ValueError, TypeError, OSError) as e:
        raise SystemExit(f"Invalid run configuration: {e}")
