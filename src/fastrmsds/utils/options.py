# FastRMSDs/src/fastrmsds/utils/options.py
"""
Options Forwarding Utility

Permissive handling of user-supplied run options:
- Alias mapping (e.g., sel1 → atoms, threads → workers)
- Filtering against the known option names of a consumer
- Strictness mode (log unknown keys or raise errors)
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Set
import logging
import warnings

logger = logging.getLogger(__name__)

__all__ = ["OptionsForwarder"]


class OptionsForwarder:
    """
    Resolves option aliases and drops unknown option names.

    Parameters
    ----------
    aliases : dict, optional
        Mapping of alias names to canonical parameter names.
        Example: {"threads": "workers", "cache_mode": "cache"}
    strict : bool
        If True, raise ValueError for conflicting or unknown options.
        If False, log warnings.
    """

    def __init__(self, aliases: Optional[Dict[str, str]] = None, strict: bool = False):
        self.aliases = aliases or {}
        self.strict = strict

    def apply_aliases(self, options: Dict[str, Any]) -> Dict[str, Any]:
        """
        Return a copy of ``options`` with alias keys renamed to their canonical names.

        When both an alias and its canonical name are present with different
        values, the later key wins (a warning, or ValueError when strict).
        """
        resolved: Dict[str, Any] = {}
        sources: Dict[str, str] = {}
        for key, value in options.items():
            canonical = self.aliases.get(key, key)
            previous_key = sources.get(canonical)

            if previous_key is not None and previous_key != key:
                existing = resolved.get(canonical)
                if existing is not None and existing != value:
                    msg = (
                        f"Both '{previous_key}' and '{key}' given for option '{canonical}'; "
                        f"using '{key}'"
                    )
                    if self.strict:
                        raise ValueError(msg)
                    logger.warning(msg)

            resolved[canonical] = value
            sources.setdefault(canonical, key)
        return resolved

    def filter_known(
        self,
        options: Dict[str, Any],
        known_keys: Set[str],
        *,
        context: str,
        warn: bool = False,
    ) -> Dict[str, Any]:
        """Keep only known option names, logging or raising on unknown keys."""
        filtered: Dict[str, Any] = {}
        unknown: List[str] = []
        for key, value in options.items():
            if key in known_keys:
                filtered[key] = value
            else:
                unknown.append(key)

        if unknown:
            msg = f"Unknown options for '{context}': {sorted(unknown)}"
            if self.strict:
                raise ValueError(msg)
            logger.warning(msg)
            if warn:
                warnings.warn(msg, stacklevel=2)

        return filtered
