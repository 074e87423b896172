"""
Frame index selection.

Matlab-style range lists select frames by inclusive ranges:

    "5"          -> [5]
    "0:4"        -> [0, 1, 2, 3, 4]
    "0:2:8"      -> [0, 2, 4, 6, 8]
    "1,4,9:11"   -> [1, 4, 9, 10, 11]

Order is preserved and duplicates are kept, so the caller controls the
row order of the resulting matrix.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple, Union

__all__ = ["parse_range_list", "resolve_frame_indices"]

FramesSpec = Union[Tuple[Optional[int], Optional[int], Optional[int]], Sequence[int]]


def _parse_int(token: str, spec: str) -> int:
    try:
        return int(token)
    except ValueError as e:
        raise ValueError(f"Invalid range '{spec}': '{token}' is not an integer") from e


def _parse_range(item: str) -> List[int]:
    parts = [p.strip() for p in item.split(":")]
    if len(parts) == 1:
        return [_parse_int(parts[0], item)]
    if len(parts) == 2:
        start, stop = (_parse_int(p, item) for p in parts)
        step = 1 if stop >= start else -1
    elif len(parts) == 3:
        start, step, stop = (_parse_int(p, item) for p in parts)
        if step == 0:
            raise ValueError(f"Invalid range '{item}': step cannot be zero")
    else:
        raise ValueError(f"Invalid range '{item}': expected a, a:b or a:step:b")

    if (stop - start) * step < 0:
        return []
    return list(range(start, stop + (1 if step > 0 else -1), step))


def parse_range_list(spec: str) -> List[int]:
    """Parse a comma-separated list of Matlab-style ranges into frame indices."""
    if spec is None or not str(spec).strip():
        raise ValueError("Empty range specification")
    indices: List[int] = []
    for item in str(spec).split(","):
        item = item.strip()
        if not item:
            continue
        indices.extend(_parse_range(item))
    for i in indices:
        if i < 0:
            raise ValueError(f"Negative frame index in range '{spec}'")
    return indices


def resolve_frame_indices(
    n_frames: int,
    frames: Optional[FramesSpec] = None,
    *,
    skip: int = 0,
    range_spec: Optional[str] = None,
) -> List[int]:
    """
    Turn the user's frame selection into an explicit ordered index list.

    Precedence: ``range_spec`` > ``frames`` > every frame. ``frames`` is either a
    (start, stop, stride) slice triple or an explicit sequence of indices.
    ``skip`` then drops the first ``skip`` entries.

    Indices are not bounds-checked here; the coordinate cache reports frames
    that cannot be read.
    """
    if skip < 0:
        raise ValueError("skip must be >= 0")

    if range_spec:
        indices = parse_range_list(range_spec)
    elif frames is None:
        indices = list(range(n_frames))
    elif isinstance(frames, tuple) and len(frames) == 3:
        # a tuple is always a slice triple; pass a list for three explicit frames
        indices = list(range(n_frames)[slice(*frames)])
    else:
        indices = [int(i) for i in frames]

    return indices[skip:]
